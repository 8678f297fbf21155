"""BLE transport implementation.

Implements IEventTransport over Bluetooth Low Energy with bleak. Frames
are produced and parsed by an injected IFrameCodec; this module only
moves them.

Communication pattern:
    1. Write the encoded frame to the write characteristic (with response)
    2. Requests that expect a reply wait for the next frame from the same
       register on the notify characteristic
    3. Frames nobody waits for are routed to the register's stream
       subscriber, if any
"""

import asyncio
import logging
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, Optional

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError
from bleak_retry_connector import close_stale_connections_by_address, establish_connection

from ...config_loader import EventCoreSettings
from ...const import (
    BLE_CONNECTION_TIMEOUT,
    BLE_DISCONNECT_TIMEOUT,
    BLE_DISCOVERY_TIMEOUT,
    BLE_NOTIFY_SUBSCRIBE_TIMEOUT,
)
from ...domain.exceptions import ConnectionLostError, TransportError
from ...domain.interfaces import IEventTransport, IFrameCodec, StreamCallback
from ...domain.value_objects import RegisterAddress, RegisterCommand
from ..decorators import handle_transport_errors

_LOGGER = logging.getLogger(__name__)


class BleakEventTransport(IEventTransport):
    """BLE transport for the remote event core.

    This implementation handles:
    - Discovery and connection via bleak / bleak-retry-connector
    - A single notify subscription demultiplexed per register
    - Request/reply correlation by register address

    Attributes:
        _codec: Firmware frame codec
        _client: Connected BleakClient
        _subscribers: Register -> stream callback
        _waiters: Register -> futures waiting for a reply, oldest first

    Example:
        >>> transport = BleakEventTransport(codec)
        >>> await transport.connect("AA:BB:CC:DD:EE:FF")
        >>> value = await transport.read_register(RegisterAddress(0x04, 0x01))
        >>> await transport.disconnect()
    """

    def __init__(self, codec: IFrameCodec, settings: Optional[EventCoreSettings] = None):
        self._codec = codec
        self._settings = settings or EventCoreSettings()
        self._address: Optional[str] = None
        self._client: Optional[BleakClient] = None
        self._connected = False
        self._subscribers: Dict[RegisterAddress, StreamCallback] = {}
        self._waiters: Dict[RegisterAddress, Deque[asyncio.Future]] = defaultdict(deque)

    async def connect(
        self, address: str, disconnected_callback: Optional[Callable] = None
    ) -> bool:
        """Connect to the BLE device and subscribe to its notify characteristic.

        Args:
            address: Device BLE MAC address
            disconnected_callback: Called with the client on unexpected loss

        Returns:
            True if connection successful
        """
        self._address = address

        _LOGGER.debug("Closing stale connections for %s", address)
        await close_stale_connections_by_address(address)

        ble_device = await BleakScanner.find_device_by_address(
            address, timeout=BLE_DISCOVERY_TIMEOUT
        )
        if ble_device is None:
            _LOGGER.error(
                "BLE device not found after %.1fs discovery: %s",
                BLE_DISCOVERY_TIMEOUT,
                address,
            )
            return False

        try:
            self._client = await asyncio.wait_for(
                establish_connection(
                    BleakClient,
                    ble_device,
                    address,
                    disconnected_callback=disconnected_callback,
                    max_attempts=2,
                ),
                timeout=BLE_CONNECTION_TIMEOUT,
            )

            if not self._client.is_connected:
                _LOGGER.error("Failed to connect to BLE device %s", address)
                return False

            await asyncio.wait_for(
                self._client.start_notify(
                    self._settings.notify_uuid, self._notification_handler
                ),
                timeout=BLE_NOTIFY_SUBSCRIBE_TIMEOUT,
            )
        except (BleakError, asyncio.TimeoutError) as err:
            _LOGGER.error("Failed to establish connection: %s", err)
            if self._client is not None:
                try:
                    await self._client.disconnect()
                except BleakError as disconnect_err:
                    _LOGGER.debug("Cleanup disconnect failed: %s", disconnect_err)
                self._client = None
            return False

        self._connected = True
        _LOGGER.info("BLE transport connected to %s", address)
        return True

    async def disconnect(self) -> None:
        """Disconnect from the BLE device. Idempotent."""
        if not self._client:
            return

        try:
            if self._client.is_connected:
                try:
                    await asyncio.wait_for(
                        self._client.stop_notify(self._settings.notify_uuid),
                        timeout=BLE_DISCONNECT_TIMEOUT,
                    )
                except (BleakError, asyncio.TimeoutError) as err:
                    _LOGGER.debug("Stop notify error (non-critical): %s", err)

                await asyncio.wait_for(
                    self._client.disconnect(), timeout=BLE_DISCONNECT_TIMEOUT
                )
                _LOGGER.debug("BLE connection closed")
        except (BleakError, asyncio.TimeoutError) as err:
            _LOGGER.warning("Error during disconnect: %s", err)
        finally:
            self._client = None
            self._connected = False
            self._subscribers.clear()
            self._fail_waiters(ConnectionLostError("BLE connection closed"))

    @property
    def is_connected(self) -> bool:
        return (
            self._connected and self._client is not None and self._client.is_connected
        )

    async def send_register_command(
        self, address: RegisterAddress, command: RegisterCommand
    ) -> Any:
        frame = self._codec.encode_command(address, command)
        if command.kind.expects_reply:
            return await self._request(address, frame)
        await self._write(frame)
        return None

    async def read_register(self, address: RegisterAddress) -> Any:
        return await self._request(address, self._codec.encode_read(address))

    async def subscribe(self, address: RegisterAddress, callback: StreamCallback) -> None:
        self._subscribers[address] = callback
        try:
            await self._write(self._codec.encode_stream(address, True))
        except TransportError:
            self._subscribers.pop(address, None)
            raise

    async def unsubscribe(self, address: RegisterAddress) -> None:
        if self._subscribers.pop(address, None) is None:
            return
        if self.is_connected:
            await self._write(self._codec.encode_stream(address, False))

    async def _request(self, address: RegisterAddress, frame: bytes) -> Any:
        """Write ``frame`` and wait for the next frame from ``address``."""
        future = asyncio.get_running_loop().create_future()
        self._waiters[address].append(future)
        try:
            await self._write(frame)
            return await future
        finally:
            waiters = self._waiters.get(address)
            if waiters and future in waiters:
                waiters.remove(future)

    @handle_transport_errors("BLE write", reraise=True)
    async def _write(self, frame: bytes) -> None:
        if not self.is_connected:
            raise ConnectionLostError("BLE connection lost - reconnection needed")

        if _LOGGER.isEnabledFor(logging.DEBUG):
            _LOGGER.debug("Writing %d bytes to %s: %s", len(frame), self._address, frame.hex())

        await self._client.write_gatt_char(self._settings.write_uuid, frame, response=True)

    def _notification_handler(self, sender: Any, data: bytearray) -> None:
        """Route one incoming frame to a waiting request or a stream."""
        try:
            address, payload = self._codec.decode_frame(bytes(data))
        except ValueError as err:
            _LOGGER.warning("Dropping undecodable frame %s: %s", bytes(data).hex(), err)
            return

        waiters = self._waiters.get(address)
        while waiters:
            future = waiters.popleft()
            if not future.done():
                future.set_result(payload)
                return

        callback = self._subscribers.get(address)
        if callback is None:
            _LOGGER.debug("No consumer for frame from %s", address.to_hex())
            return
        callback(payload, None)

    def _fail_waiters(self, error: Exception) -> None:
        for waiters in self._waiters.values():
            while waiters:
                future = waiters.popleft()
                if not future.done():
                    future.set_exception(error)
        self._waiters.clear()
