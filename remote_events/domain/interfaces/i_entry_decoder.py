"""IEntryDecoder interface for payload decoding."""

from abc import ABC, abstractmethod
from typing import Any


class IEntryDecoder(ABC):
    """Decodes raw payloads into typed values.

    The register kind (e.g. "switch", "temperature") decides the decoding.
    Used for notification payloads, coupled reads and log entries alike.
    """

    @abstractmethod
    def decode(self, kind: str, raw: Any) -> Any:
        """Decode one raw payload.

        Args:
            kind: Register kind of the emitting register
            raw: Raw payload as delivered by the transport

        Returns:
            Decoded value
        """
