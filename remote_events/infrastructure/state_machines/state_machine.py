"""Table-driven state machine shared by connection and capture lifecycles."""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple

_LOGGER = logging.getLogger(__name__)


class StateMachine:
    """Explicit state machine driven by a transition table.

    Subclasses provide the initial state and the table mapping
    ``(current_state, event) -> new_state``.
    """

    def __init__(
        self,
        initial: Enum,
        transitions: Dict[Tuple[Enum, Enum], Enum],
        name: str = "State machine",
    ):
        self._initial = initial
        self._state = initial
        self._previous_state: Optional[Enum] = None
        self._transitions = transitions
        self._name = name

    @property
    def state(self) -> Enum:
        """Get current state."""
        return self._state

    @property
    def previous_state(self) -> Optional[Enum]:
        return self._previous_state

    def can_transition(self, event: Enum) -> bool:
        """Whether ``event`` is valid in the current state."""
        return (self._state, event) in self._transitions

    def transition(self, event: Enum) -> bool:
        """Attempt state transition.

        Args:
            event: Event triggering transition

        Returns:
            True if transition valid and executed, False otherwise
        """
        key = (self._state, event)

        if key not in self._transitions:
            _LOGGER.debug(
                "%s: invalid transition %s + %s",
                self._name,
                self._state.name,
                event.name,
            )
            return False

        self._change_state(self._transitions[key], event)
        return True

    def force_state(self, state: Enum) -> None:
        """Force state change (bypasses validation).

        Use sparingly - prefer transition() for normal flow.
        """
        self._previous_state = self._state
        self._state = state
        _LOGGER.debug(
            "%s: force state %s -> %s", self._name, self._previous_state.name, state.name
        )

    def reset(self) -> None:
        """Reset to the initial state."""
        self._state = self._initial
        self._previous_state = None

    def _change_state(self, new_state: Enum, event: Enum) -> None:
        self._previous_state = self._state
        self._state = new_state

        _LOGGER.debug(
            "%s: %s -> %s (event: %s)",
            self._name,
            self._previous_state.name,
            new_state.name,
            event.name,
        )

    def __str__(self) -> str:
        return f"{type(self).__name__}(state={self._state.name})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(state={self._state!r}, "
            f"previous={self._previous_state!r})"
        )
