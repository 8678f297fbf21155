"""Capture state machine for command programming.

Idle -> Capturing -> Idle. A block of API calls is captured while in
CAPTURING; committing or aborting always returns to IDLE.
"""

from enum import Enum, auto

from .state_machine import StateMachine


class CaptureState(Enum):
    """Command capture states."""

    IDLE = auto()
    CAPTURING = auto()


class CaptureEvent(Enum):
    """Events driving the capture lifecycle."""

    BEGIN = auto()
    COMMIT = auto()
    ABORT = auto()


_TRANSITIONS = {
    (CaptureState.IDLE, CaptureEvent.BEGIN): CaptureState.CAPTURING,
    (CaptureState.CAPTURING, CaptureEvent.COMMIT): CaptureState.IDLE,
    (CaptureState.CAPTURING, CaptureEvent.ABORT): CaptureState.IDLE,
}


class CaptureStateMachine(StateMachine):
    """State machine guarding one-shot command capture.

    Example:
        >>> sm = CaptureStateMachine()
        >>> sm.transition(CaptureEvent.BEGIN)
        True
        >>> sm.transition(CaptureEvent.BEGIN)
        False
    """

    def __init__(self):
        super().__init__(CaptureState.IDLE, _TRANSITIONS, "Capture state")

    @property
    def is_capturing(self) -> bool:
        return self._state == CaptureState.CAPTURING
