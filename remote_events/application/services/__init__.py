"""Application services of the remote event core."""

from .command_programmer import CommandProgrammer
from .command_recorder import CommandRecorder
from .event_graph import EventGraph
from .identifier_registry import IdentifierRegistry
from .log_transfer_service import LogTransferService
from .notification_manager import NotificationManager

__all__ = [
    "CommandProgrammer",
    "CommandRecorder",
    "EventGraph",
    "IdentifierRegistry",
    "LogTransferService",
    "NotificationManager",
]
