"""IEventTransport interface for the transport collaborator."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ..value_objects import RegisterAddress, RegisterCommand

# Stream callback: (raw_payload, error). Exactly one of them is set.
StreamCallback = Callable[[Any, Optional[Exception]], None]


class IEventTransport(ABC):
    """Interface for transport layer implementations.

    The transport owns the physical link (BLE or other) and the firmware
    encoding of commands. The event core only speaks in register addresses
    and logical RegisterCommands.

    Connection lifecycle:
        1. connect(address, disconnected_callback) establishes the link
        2. requests, reads and subscriptions (many times)
        3. disconnect() closes the link

    Connection loss must be reported through ``disconnected_callback`` and
    by raising ConnectionLostError from pending and subsequent requests.

    Example:
        >>> transport = BleakEventTransport(codec)
        >>> await transport.connect("AA:BB:CC:DD:EE:FF")
        >>> count = await transport.send_register_command(
        ...     address, RegisterCommand(CommandKind.LOG_ENTRY_COUNT)
        ... )
    """

    @abstractmethod
    async def connect(
        self, address: str, disconnected_callback: Optional[Callable] = None
    ) -> bool:
        """Establish connection to device.

        Args:
            address: Device address (BLE MAC for BLE)
            disconnected_callback: Called with the transport's client when
                the link drops unexpectedly

        Returns:
            True if connection successful, False otherwise
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to device. Idempotent."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if transport is currently connected."""

    @abstractmethod
    async def send_register_command(
        self, address: RegisterAddress, command: RegisterCommand
    ) -> Any:
        """Send a logical command to a register.

        Args:
            address: Target register
            command: Command to execute

        Returns:
            Reply data for commands whose kind ``expects_reply``
            (an int for LOG_ENTRY_COUNT, a bool for LOG_QUERY, a list of raw
            entries for LOG_READ), otherwise None.

        Raises:
            TransportError: If the request fails
            ConnectionLostError: If the link is down
        """

    @abstractmethod
    async def read_register(self, address: RegisterAddress) -> Any:
        """Read the current raw value of a register.

        Raises:
            TransportError: If the read fails
        """

    @abstractmethod
    async def subscribe(self, address: RegisterAddress, callback: StreamCallback) -> None:
        """Start streaming a register's firings to ``callback``.

        Raises:
            TransportError: If the stream cannot be established
        """

    @abstractmethod
    async def unsubscribe(self, address: RegisterAddress) -> None:
        """Stop streaming a register. No-op if it is not streaming."""
