"""Domain entities for the remote event core.

Entities have identity and mutable state. Registers and events are
identified by (session, address); value objects by their value.
"""

from .register import DataRegister, Register
from .event import Event, EventHandler

__all__ = [
    "DataRegister",
    "Register",
    "Event",
    "EventHandler",
]
