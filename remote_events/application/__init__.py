"""Application layer of the remote event core.

The application layer orchestrates domain entities against the transport:
- DeviceSession: connection-scoped owner of registers and events
- Services: event graph, identifier registry, notifications, command
  programming and log transfer
"""

from .device_session import DeviceSession

__all__ = ["DeviceSession"]
