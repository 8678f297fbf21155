"""Transport implementations and connection lifecycle management."""

from .ble_transport import BleakEventTransport
from .connection_manager import ConnectionManager

__all__ = [
    "BleakEventTransport",
    "ConnectionManager",
]
