"""Infrastructure layer of the remote event core.

The infrastructure layer contains:
- Transport implementations (BLE via bleak) and connection management
- State machines for connection and command capture lifecycles
- Error handling and session validity decorators
- Payload decoders

This layer depends on the domain layer and on external libraries; the
domain layer does not depend on it.
"""
