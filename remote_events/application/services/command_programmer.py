"""CommandProgrammer service: binds captured command lists to events.

Programming runs a block exactly once against a CommandRecorder while the
capture state machine is CAPTURING, validates what was recorded, and
uploads it to the device as the event's trigger list.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Tuple

from ...domain.entities import Event
from ...domain.exceptions import InvalidArgumentError, InvalidCommandSequenceError
from ...domain.value_objects import (
    CommandKind,
    Instruction,
    OperationResult,
    RegisterCommand,
)
from ...infrastructure.decorators import deliver_result, require_valid_session
from ...infrastructure.state_machines import CaptureEvent, CaptureStateMachine
from .command_recorder import CommandRecorder

if TYPE_CHECKING:
    from ..device_session import DeviceSession

_LOGGER = logging.getLogger(__name__)


class CommandProgrammer:
    """Service capturing and uploading on-device command lists.

    Example:
        >>> task = session.programmer.program(switch, lambda rec: rec.write(led, 1))
        >>> (await task).value
        1
        >>> switch.programmed_commands
        (Instruction(...),)
    """

    def __init__(self, session: "DeviceSession"):
        self._session = session
        self._capture = CaptureStateMachine()

    @property
    def is_capturing(self) -> bool:
        return self._capture.is_capturing

    @require_valid_session(register_param="event")
    def program(
        self, event: Event, block: Callable[[CommandRecorder], None]
    ) -> asyncio.Task:
        """Capture ``block``'s calls and bind them to ``event``'s trigger.

        The block runs once, synchronously. If it raises, the capture is
        discarded and the exception propagates.

        Returns:
            Task resolving to an OperationResult whose value is the number
            of uploaded instructions

        Raises:
            InvalidatedSessionError: If ``event``'s session is gone
            InvalidCommandSequenceError: If called while capturing, or if
                the block recorded a call the device cannot execute
        """
        if not callable(block):
            raise InvalidArgumentError(f"Command block must be callable, got {block!r}")
        if not self._capture.transition(CaptureEvent.BEGIN):
            raise InvalidCommandSequenceError(
                "program_commands cannot be called inside a command block"
            )

        recorder = CommandRecorder(self._session)
        try:
            block(recorder)
        except BaseException:
            self._capture.transition(CaptureEvent.ABORT)
            _LOGGER.debug("Command block of %s raised; capture discarded", event)
            raise
        finally:
            recorder.close()
        self._capture.transition(CaptureEvent.COMMIT)

        instructions = recorder.instructions
        rejected = [i for i in instructions if not i.is_remote_executable]
        if rejected:
            raise InvalidCommandSequenceError(
                f"{len(rejected)} captured call(s) need a host callback and cannot "
                f"run on the device: {', '.join(str(i) for i in rejected)}"
            )

        _LOGGER.debug("Captured %d instructions for %s", len(instructions), event)
        return self._session.schedule(
            self._upload(event, instructions), name=f"program {event}"
        )

    @require_valid_session(register_param="event")
    def erase(self, event: Event) -> asyncio.Task:
        """Remove the command list bound to ``event``. Idempotent."""
        return self._session.schedule(self._erase(event), name=f"erase {event}")

    @deliver_result("Command upload")
    async def _upload(
        self, event: Event, instructions: Tuple[Instruction, ...]
    ) -> OperationResult:
        await self._session.ensure_installed(event)
        # targets need device addresses before the list can be encoded
        for instruction in instructions:
            if isinstance(instruction.target, Event):
                await self._session.ensure_installed(instruction.target)
        command = RegisterCommand(
            CommandKind.PROGRAM_COMMANDS,
            {"instructions": [instruction.to_dict() for instruction in instructions]},
        )
        await self._session.request(event.address, command)
        event._set_commands(instructions)
        _LOGGER.info("Programmed %d commands on %s", len(instructions), event)
        return OperationResult.ok(len(instructions))

    @deliver_result("Command erase")
    async def _erase(self, event: Event) -> OperationResult:
        if event.is_installed:
            await self._session.request(
                event.address, RegisterCommand(CommandKind.ERASE_COMMANDS)
            )
        event._set_commands(())
        return OperationResult.ok()
