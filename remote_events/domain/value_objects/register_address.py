"""RegisterAddress value object.

Identifies a register on the remote device by module id, register id and
an optional index (used for multi-instance modules and filter slots).
"""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class RegisterAddress:
    """Immutable register address.

    Every component is an unsigned byte. ``index`` defaults to
    ``NO_INDEX`` for registers that are not instanced.

    Attributes:
        module: Module id (0x00 - 0xFF)
        register: Register id within the module (0x00 - 0xFF)
        index: Instance index, or NO_INDEX

    Example:
        >>> addr = RegisterAddress(0x01, 0x01)
        >>> addr.to_hex()
        '0x01:0x01'
        >>> RegisterAddress(0x09, 0x03, 2).to_bytes()
        b'\\t\\x03\\x02'

    Raises:
        TypeError: If a component is not an int
        ValueError: If a component is outside 0-255
    """

    module: int
    register: int
    index: int = 0xFF

    MIN_COMPONENT: ClassVar[int] = 0x00
    MAX_COMPONENT: ClassVar[int] = 0xFF
    NO_INDEX: ClassVar[int] = 0xFF

    def __post_init__(self) -> None:
        """Validate all components are unsigned bytes."""
        for name in ("module", "register", "index"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(
                    f"Address {name} must be int, got {type(value).__name__}"
                )
            if value < self.MIN_COMPONENT or value > self.MAX_COMPONENT:
                raise ValueError(
                    f"Address {name} must be between {self.MIN_COMPONENT:#04x} "
                    f"and {self.MAX_COMPONENT:#04x}, got {value:#04x}"
                )

    @property
    def is_indexed(self) -> bool:
        """Whether this address carries an instance index."""
        return self.index != self.NO_INDEX

    def with_index(self, index: int) -> "RegisterAddress":
        """Return the same module/register with another index."""
        return RegisterAddress(self.module, self.register, index)

    def to_bytes(self) -> bytes:
        """Return the 3-byte header form ``module, register, index``."""
        return bytes((self.module, self.register, self.index))

    def to_hex(self) -> str:
        """Format address for logs.

        Example:
            >>> RegisterAddress(0x09, 0x03, 0x00).to_hex()
            '0x09:0x03[0]'
        """
        text = f"{self.module:#04x}:{self.register:#04x}"
        if self.is_indexed:
            text += f"[{self.index}]"
        return text

    def to_dict(self) -> dict:
        """Plain dictionary form used by recipe serialisation."""
        return {"module": self.module, "register": self.register, "index": self.index}

    @classmethod
    def from_dict(cls, data: dict) -> "RegisterAddress":
        """Inverse of to_dict."""
        return cls(
            data["module"], data["register"], data.get("index", cls.NO_INDEX)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "RegisterAddress":
        """Create RegisterAddress from a header.

        Args:
            data: At least 2 bytes; a third byte, when present, is the index

        Raises:
            ValueError: If fewer than 2 bytes are given
        """
        if len(data) < 2:
            raise ValueError(f"Expected at least 2 bytes, got {len(data)}")
        index = data[2] if len(data) > 2 else cls.NO_INDEX
        return cls(data[0], data[1], index)

    def __str__(self) -> str:
        """String representation for logging."""
        return f"RegisterAddress({self.to_hex()})"
