"""Domain layer of the remote event core.

This layer contains:
- Interfaces: contracts of the transport, decoder and frame codec collaborators
- Value Objects: addresses, commands, filter specs, recipes, instructions
- Entities: registers and events, including firing propagation
- Domain Services: filter evaluation

The domain layer depends on the Python standard library only.
"""
