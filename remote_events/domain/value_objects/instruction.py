"""Instruction value object captured while programming commands."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from .register_command import RegisterCommand

if TYPE_CHECKING:
    from ..entities import Register


@dataclass(frozen=True)
class Instruction:
    """One captured API call, destined for on-device execution.

    The target is kept as the register itself rather than its address: a
    derived event has no device address until its filter is installed,
    which may happen only when the instructions are uploaded.

    Attributes:
        target: Register the command applies to
        command: Logical command
        callback: Host-side callback passed to the call, if any. The
            device cannot call back into the host, so any instruction with
            a callback is not remotely executable.
    """

    target: "Register"
    command: RegisterCommand
    callback: Optional[Callable] = None

    @property
    def is_remote_executable(self) -> bool:
        """Whether the device can run this instruction on its own."""
        return self.callback is None

    def to_dict(self) -> dict:
        """Payload form sent with PROGRAM_COMMANDS. Needs an installed target."""
        if self.target.address is None:
            raise ValueError(f"{self.target} has no device address yet")
        return {
            "target": self.target.address.to_dict(),
            "command": self.command.kind.value,
            "params": dict(self.command.params),
        }

    def __str__(self) -> str:
        """String representation for logging."""
        if self.target.address is None:
            return f"{self.command} @ {self.target}"
        return f"{self.command} @ {self.target.address.to_hex()}"
