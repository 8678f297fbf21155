"""State machines for managing explicit lifecycles."""

from .state_machine import StateMachine
from .connection_state_machine import (
    ConnectionStateMachine,
    ConnectionState,
    ConnectionEvent,
)
from .capture_state_machine import (
    CaptureStateMachine,
    CaptureState,
    CaptureEvent,
)

__all__ = [
    "StateMachine",
    "ConnectionStateMachine",
    "ConnectionState",
    "ConnectionEvent",
    "CaptureStateMachine",
    "CaptureState",
    "CaptureEvent",
]
