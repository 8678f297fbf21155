"""IFrameCodec interface for firmware command encoding."""

from abc import ABC, abstractmethod
from typing import Any, Tuple

from ..value_objects import RegisterAddress, RegisterCommand


class IFrameCodec(ABC):
    """Translates logical commands to and from device frames.

    Firmware encoding is device specific and lives outside the core; the
    BLE transport is handed an implementation of this interface.
    """

    @abstractmethod
    def encode_command(self, address: RegisterAddress, command: RegisterCommand) -> bytes:
        """Encode a logical command to a frame."""

    @abstractmethod
    def encode_read(self, address: RegisterAddress) -> bytes:
        """Encode a register read request."""

    @abstractmethod
    def encode_stream(self, address: RegisterAddress, enable: bool) -> bytes:
        """Encode a request to start or stop streaming a register."""

    @abstractmethod
    def decode_frame(self, frame: bytes) -> Tuple[RegisterAddress, Any]:
        """Split an incoming frame into its source address and payload."""
