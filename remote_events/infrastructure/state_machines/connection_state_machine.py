"""Connection state machine for explicit state management."""

from enum import Enum, auto

from .state_machine import StateMachine


class ConnectionState(Enum):
    """Connection states."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    FAILED = auto()
    BACKOFF = auto()


class ConnectionEvent(Enum):
    """Connection events that trigger state transitions."""

    CONNECT = auto()
    CONNECT_SUCCESS = auto()
    CONNECT_FAILED = auto()
    DISCONNECT = auto()
    CONNECTION_LOST = auto()
    RETRY = auto()
    BACKOFF_EXPIRED = auto()


_TRANSITIONS = {
    (ConnectionState.DISCONNECTED, ConnectionEvent.CONNECT): ConnectionState.CONNECTING,
    (ConnectionState.CONNECTING, ConnectionEvent.CONNECT_SUCCESS): ConnectionState.CONNECTED,
    (ConnectionState.CONNECTING, ConnectionEvent.CONNECT_FAILED): ConnectionState.FAILED,
    (ConnectionState.CONNECTED, ConnectionEvent.DISCONNECT): ConnectionState.DISCONNECTED,
    (ConnectionState.CONNECTED, ConnectionEvent.CONNECTION_LOST): ConnectionState.RECONNECTING,
    (ConnectionState.FAILED, ConnectionEvent.RETRY): ConnectionState.BACKOFF,
    (ConnectionState.FAILED, ConnectionEvent.CONNECT): ConnectionState.CONNECTING,
    (ConnectionState.BACKOFF, ConnectionEvent.BACKOFF_EXPIRED): ConnectionState.CONNECTING,
    (ConnectionState.RECONNECTING, ConnectionEvent.RETRY): ConnectionState.CONNECTING,
    (ConnectionState.RECONNECTING, ConnectionEvent.DISCONNECT): ConnectionState.DISCONNECTED,
}


class ConnectionStateMachine(StateMachine):
    """State machine for connection lifecycle management.

    Valid transitions:
        DISCONNECTED -> CONNECTING (on CONNECT)
        CONNECTING -> CONNECTED (on CONNECT_SUCCESS)
        CONNECTING -> FAILED (on CONNECT_FAILED)
        CONNECTED -> DISCONNECTED (on DISCONNECT)
        CONNECTED -> RECONNECTING (on CONNECTION_LOST)
        FAILED -> BACKOFF (on RETRY)
        FAILED -> CONNECTING (on CONNECT)
        BACKOFF -> CONNECTING (on BACKOFF_EXPIRED)
        RECONNECTING -> CONNECTING (on RETRY)
        RECONNECTING -> DISCONNECTED (on DISCONNECT)

    Example:
        >>> sm = ConnectionStateMachine()
        >>> sm.transition(ConnectionEvent.CONNECT)
        True
        >>> sm.transition(ConnectionEvent.CONNECT_SUCCESS)
        True
        >>> sm.is_connected
        True
    """

    def __init__(self):
        """Initialize state machine in DISCONNECTED state."""
        super().__init__(ConnectionState.DISCONNECTED, _TRANSITIONS, "Connection state")

    @property
    def is_connected(self) -> bool:
        """Check if currently connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def is_connecting(self) -> bool:
        """Check if connection in progress."""
        return self._state in (ConnectionState.CONNECTING, ConnectionState.RECONNECTING)

    @property
    def can_connect(self) -> bool:
        """Check if connection can be initiated."""
        return self._state in (
            ConnectionState.DISCONNECTED,
            ConnectionState.FAILED,
            ConnectionState.BACKOFF,
            ConnectionState.RECONNECTING,
        )
