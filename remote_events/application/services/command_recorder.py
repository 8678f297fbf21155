"""CommandRecorder: capability object handed to a command block.

It exposes the operations of the live device interface, but each call
only appends an Instruction. Nothing is sent to the device until the
programmer uploads the captured list.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from ...domain.entities import Event, Register
from ...domain.exceptions import (
    CrossSessionError,
    InvalidatedSessionError,
    InvalidCommandSequenceError,
)
from ...domain.value_objects import CommandKind, Instruction, RegisterCommand

if TYPE_CHECKING:
    from ..device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class CommandRecorder:
    """Records instructions for on-device execution.

    Calls accepting a host-side callback are recorded as well; they make
    the sequence non-executable and the upload is refused.

    Example:
        >>> def on_press(rec):
        ...     rec.write(led, 1)
        ...     rec.start_logging(temperature_event)
        >>> switch.program_commands(on_press)
    """

    def __init__(self, session: "DeviceSession"):
        self._session = session
        self._instructions: List[Instruction] = []
        self._open = True

    @property
    def instructions(self) -> Tuple[Instruction, ...]:
        return tuple(self._instructions)

    @property
    def is_open(self) -> bool:
        return self._open

    def write(self, register: Register, value: Any) -> None:
        self.command(register, CommandKind.WRITE, value=value)

    def read(self, register: Register, handler: Optional[Callable] = None) -> None:
        """Read ``register``; a handler cannot run on the device."""
        self._record(register, RegisterCommand(CommandKind.READ), handler)

    def start_logging(self, event: Event) -> None:
        self.command(event, CommandKind.LOG_START)

    def stop_logging(self, event: Event) -> None:
        self.command(event, CommandKind.LOG_STOP)

    def clear_log(self, event: Event) -> None:
        self.command(event, CommandKind.LOG_CLEAR)

    def erase_commands(self, event: Event) -> None:
        self.command(event, CommandKind.ERASE_COMMANDS)

    def start_notifications(self, event: Event, handler: Callable) -> None:
        """Notifications always call back into the host."""
        self._record(event, RegisterCommand(CommandKind.READ), handler)

    def command(self, register: Register, kind: CommandKind, **params: Any) -> None:
        """Record an arbitrary register command."""
        self._record(register, RegisterCommand(kind, params), None)

    def close(self) -> None:
        """Refuse further calls; the block is over."""
        self._open = False

    def _record(
        self,
        register: Register,
        command: RegisterCommand,
        callback: Optional[Callable],
    ) -> None:
        if not self._open:
            raise InvalidCommandSequenceError(
                "Command recorder used after its block returned"
            )
        if not isinstance(register, Register):
            raise InvalidCommandSequenceError(f"Not a register: {register!r}")
        if register.session is not self._session:
            raise CrossSessionError(
                f"{register} belongs to session {register.session.session_id}, "
                f"not {self._session.session_id}"
            )
        if not register.is_valid:
            raise InvalidatedSessionError(f"{register} belongs to an invalidated session")

        instruction = Instruction(register, command, callback)
        self._instructions.append(instruction)
        _LOGGER.debug("Captured %s", instruction)
