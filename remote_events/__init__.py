"""Remote event core.

Host-side model of events raised by peripherals on a remote device,
filters composed from them, and the sinks they feed: host notifications,
on-device command lists and the on-device log.
"""

from .application import DeviceSession
from .application.services import CommandRecorder, IdentifierRegistry
from .config_loader import (
    EventCoreSettings,
    dump_registry_yaml,
    load_registry_yaml,
    load_settings,
)
from .device import RemoteDevice
from .domain.entities import DataRegister, Event, Register
from .domain.exceptions import (
    ConnectionLostError,
    CrossSessionError,
    DownloadInProgressError,
    DuplicateIdentifierError,
    InvalidArgumentError,
    InvalidatedSessionError,
    InvalidCommandSequenceError,
    InvalidSourceError,
    RemoteEventsError,
    TransportError,
)
from .domain.value_objects import (
    CommandKind,
    EventRecipe,
    FilterKind,
    FilterSpec,
    Instruction,
    OperationResult,
    RegisterAddress,
    RegisterCommand,
)

__all__ = [
    "CommandKind",
    "CommandRecorder",
    "ConnectionLostError",
    "CrossSessionError",
    "DataRegister",
    "DeviceSession",
    "DownloadInProgressError",
    "DuplicateIdentifierError",
    "Event",
    "EventCoreSettings",
    "EventRecipe",
    "FilterKind",
    "FilterSpec",
    "IdentifierRegistry",
    "Instruction",
    "InvalidArgumentError",
    "InvalidatedSessionError",
    "InvalidCommandSequenceError",
    "InvalidSourceError",
    "OperationResult",
    "Register",
    "RegisterAddress",
    "RegisterCommand",
    "RemoteDevice",
    "RemoteEventsError",
    "TransportError",
    "dump_registry_yaml",
    "load_registry_yaml",
    "load_settings",
]
