"""RegisterCommand value object.

A command is the logical request the core sends to a register through the
transport. Encoding it to firmware bytes is the transport's job.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class CommandKind(Enum):
    """Logical commands understood by the transport collaborator."""

    WRITE = "write"
    READ = "read"
    LOG_START = "log_start"
    LOG_STOP = "log_stop"
    LOG_QUERY = "log_query"
    LOG_ENTRY_COUNT = "log_entry_count"
    LOG_READ = "log_read"
    LOG_CLEAR = "log_clear"
    PROGRAM_COMMANDS = "program_commands"
    ERASE_COMMANDS = "erase_commands"
    INSTALL_FILTER = "install_filter"

    @property
    def expects_reply(self) -> bool:
        """Whether the device answers this command with data."""
        return self in (
            CommandKind.READ,
            CommandKind.LOG_QUERY,
            CommandKind.LOG_ENTRY_COUNT,
            CommandKind.LOG_READ,
        )


@dataclass(frozen=True)
class RegisterCommand:
    """Command with its parameters.

    Attributes:
        kind: What the device should do
        params: Command parameters (e.g. ``{"value": 1}`` for WRITE,
            ``{"start": 0, "count": 16}`` for LOG_READ)

    Example:
        >>> cmd = RegisterCommand(CommandKind.LOG_READ, {"start": 0, "count": 4})
        >>> cmd.kind.expects_reply
        True
    """

    kind: CommandKind
    params: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """String representation for logging."""
        if not self.params:
            return self.kind.value
        args = ", ".join(f"{key}={value!r}" for key, value in self.params.items())
        return f"{self.kind.value}({args})"
