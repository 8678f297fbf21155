"""Register entity.

A Register is an addressable, readable/writable location on the remote
device. It belongs to exactly one connection session and is unusable once
that session has been invalidated.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Optional

from ..exceptions import InvalidatedSessionError
from ..value_objects import RegisterAddress

if TYPE_CHECKING:
    from ...application.device_session import DeviceSession


class Register:
    """Domain entity representing a register on the remote device.

    Identity is the pair (session, address): the same address obtained on
    two different connections yields two different registers.

    Attributes:
        address: Register address (value object)
        kind: Register kind, selects how payloads are decoded
        cached_value: Last value read through ``read()``, if any

    Example:
        >>> temperature = session.data_register(RegisterAddress(0x04, 0x01), "temperature")
        >>> result = await temperature.read()
        >>> temperature.cached_value == result.value
        True
    """

    def __init__(
        self, session: "DeviceSession", address: RegisterAddress, kind: str = ""
    ):
        self._session = session
        self._address = address
        self._kind = kind
        self._cached_value: Optional[Any] = None

    @property
    def session(self) -> "DeviceSession":
        """Owning connection session."""
        return self._session

    @property
    def address(self) -> RegisterAddress:
        return self._address

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def cached_value(self) -> Optional[Any]:
        return self._cached_value

    @property
    def is_valid(self) -> bool:
        """Whether the owning session is still alive."""
        return self._session.is_valid

    def ensure_valid(self) -> None:
        """Raise if the owning session has been invalidated.

        Raises:
            InvalidatedSessionError: If the connection has dropped
        """
        if not self._session.is_valid:
            raise InvalidatedSessionError(
                f"{self} belongs to invalidated session {self._session.session_id}"
            )

    def read(self) -> "asyncio.Task":
        """Read the register; the task resolves to an OperationResult."""
        return self._session.read_register(self)

    def write(self, value: Any) -> "asyncio.Task":
        """Write ``value``; the task resolves to an OperationResult."""
        return self._session.write_register(self, value)

    def _cache_value(self, value: Any) -> None:
        self._cached_value = value

    def __eq__(self, other: object) -> bool:
        """Equality based on session and address (entity identity)."""
        if not isinstance(other, Register):
            return False
        return (
            self._session.session_id == other._session.session_id
            and self._address == other._address
        )

    def __hash__(self) -> int:
        return hash((self._session.session_id, self._address))

    def __str__(self) -> str:
        """String representation for logging."""
        kind = f" {self._kind}" if self._kind else ""
        return f"{type(self).__name__}({self._address.to_hex()}{kind})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(address={self._address!r}, kind={self._kind!r}, "
            f"session={self._session.session_id})"
        )


class DataRegister(Register):
    """Readable data source, e.g. a sensor value or a status register.

    Data registers do not fire on their own; they are read on demand or
    coupled to an event with ``Event.read_on_event``.
    """
