"""RemoteDevice: entry point to the remote event core.

A RemoteDevice owns the connection lifecycle and the identifier registry.
Each successful connect opens a fresh DeviceSession; a disconnect, whether
requested or not, invalidates it. Identified events are carried across
sessions through the registry and rebuilt with ``restore``.
"""

import logging
from typing import Optional

from .application import DeviceSession
from .application.device_session import Clock
from .application.services import IdentifierRegistry
from .config_loader import EventCoreSettings
from .domain.entities import DataRegister, Event
from .domain.exceptions import InvalidatedSessionError
from .domain.interfaces import IEntryDecoder, IEventTransport, IFrameCodec
from .domain.value_objects import RegisterAddress
from .infrastructure.transport import BleakEventTransport, ConnectionManager

_LOGGER = logging.getLogger(__name__)


class RemoteDevice:
    """Facade over connection management, sessions and restoration.

    Example:
        >>> device = RemoteDevice.ble("AA:BB:CC:DD:EE:FF", codec)
        >>> await device.connect()
        >>> switch = device.event(0x01, 0x01, kind="switch")
        >>> presses = switch.accumulate(identifier="press-count")
        >>> # ... connection drops and comes back ...
        >>> await device.connect()
        >>> presses = device.restore("press-count")
    """

    def __init__(
        self,
        address: str,
        transport: IEventTransport,
        decoder: Optional[IEntryDecoder] = None,
        settings: Optional[EventCoreSettings] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize device.

        Args:
            address: Device address handed to the transport
            transport: Transport implementation
            decoder: Payload decoder shared by every session
            settings: Core settings
            clock: Millisecond clock for firing timestamps
        """
        self._address = address
        self._transport = transport
        self._decoder = decoder
        self._settings = settings or EventCoreSettings()
        self._clock = clock
        self._registry = IdentifierRegistry()
        self._session: Optional[DeviceSession] = None
        self._connection = ConnectionManager(transport)
        self._connection.add_connection_lost_listener(self.handle_connection_lost)

    @classmethod
    def ble(
        cls,
        address: str,
        codec: IFrameCodec,
        settings: Optional[EventCoreSettings] = None,
        decoder: Optional[IEntryDecoder] = None,
    ) -> "RemoteDevice":
        """Device reached over BLE through bleak."""
        settings = settings or EventCoreSettings()
        return cls(
            address,
            BleakEventTransport(codec, settings),
            decoder=decoder,
            settings=settings,
        )

    @property
    def address(self) -> str:
        return self._address

    @property
    def registry(self) -> IdentifierRegistry:
        return self._registry

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    @property
    def session(self) -> Optional[DeviceSession]:
        """Live session, or None while disconnected."""
        if self._session is not None and self._session.is_valid:
            return self._session
        return None

    @property
    def is_connected(self) -> bool:
        return self.session is not None and self._transport.is_connected

    async def connect(self) -> bool:
        """Connect and open a new session.

        Returns:
            True if a live session is available afterwards
        """
        if self.is_connected:
            return True

        if not await self._connection.ensure_connected(self._address):
            _LOGGER.warning("Could not connect to %s", self._address)
            return False

        if self._session is not None:
            self._session.invalidate()
        self._session = DeviceSession(
            self._transport,
            decoder=self._decoder,
            settings=self._settings,
            clock=self._clock,
            registry=self._registry,
        )
        _LOGGER.info(
            "Session %d opened on %s (%d restorable identifiers)",
            self._session.session_id,
            self._address,
            len(self._registry.identifiers()),
        )
        return True

    async def disconnect(self) -> None:
        """Invalidate the session and close the connection."""
        if self._session is not None:
            self._session.invalidate()
        await self._connection.disconnect()

    def handle_connection_lost(self) -> None:
        """Invalidate the live session; the link is gone."""
        if self._session is not None and self._session.is_valid:
            _LOGGER.warning("Connection to %s lost", self._address)
            self._session.invalidate()

    def require_session(self) -> DeviceSession:
        """Live session.

        Raises:
            InvalidatedSessionError: If the device is not connected
        """
        session = self.session
        if session is None:
            raise InvalidatedSessionError(f"{self._address} is not connected")
        return session

    def event(
        self,
        module: int,
        register: int,
        index: int = RegisterAddress.NO_INDEX,
        kind: str = "",
    ) -> Event:
        """Root event of the live session; repeated calls return the same one."""
        return self.require_session().root_event(
            RegisterAddress(module, register, index), kind
        )

    def data(
        self,
        module: int,
        register: int,
        index: int = RegisterAddress.NO_INDEX,
        kind: str = "",
    ) -> DataRegister:
        """Data register of the live session."""
        return self.require_session().data_register(
            RegisterAddress(module, register, index), kind
        )

    def restore(self, identifier: str) -> Optional[Event]:
        """Event bound to ``identifier``, rebuilt in the live session if needed.

        Returns:
            The event, or None if the identifier is unknown

        Raises:
            InvalidatedSessionError: If the device is not connected
        """
        self.require_session()
        return self._registry.restore(identifier)
