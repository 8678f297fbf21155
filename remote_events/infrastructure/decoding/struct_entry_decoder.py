"""Struct-based payload decoder."""

import logging
import struct
from typing import Any, Dict, Optional

from ...const import DEFAULT_DECODER_FORMATS
from ...domain.interfaces import IEntryDecoder

_LOGGER = logging.getLogger(__name__)


class StructEntryDecoder(IEntryDecoder):
    """Decode raw byte payloads with a struct format per register kind.

    Kinds without a format, and payloads that are not bytes (already
    decoded by the transport), are passed through unchanged. Single-field
    formats decode to a scalar, multi-field formats to a tuple.

    Example:
        >>> decoder = StructEntryDecoder({"temperature": "<h"})
        >>> decoder.decode("temperature", b"\\xf6\\xff")
        -10
        >>> decoder.decode("unknown", b"\\x01\\x02")
        b'\\x01\\x02'
    """

    def __init__(self, formats: Optional[Dict[str, str]] = None):
        self._formats: Dict[str, struct.Struct] = {}
        source = DEFAULT_DECODER_FORMATS if formats is None else formats
        for kind, fmt in source.items():
            self.register_format(kind, fmt)

    def register_format(self, kind: str, fmt: str) -> None:
        """Add or replace the struct format of a register kind.

        Raises:
            ValueError: If ``fmt`` is not a valid struct format
        """
        try:
            self._formats[kind] = struct.Struct(fmt)
        except struct.error as err:
            raise ValueError(f"Invalid struct format {fmt!r} for {kind}: {err}") from err

    def decode(self, kind: str, raw: Any) -> Any:
        if not isinstance(raw, (bytes, bytearray, memoryview)):
            return raw

        layout = self._formats.get(kind)
        if layout is None:
            return bytes(raw)

        try:
            values = layout.unpack_from(raw)
        except struct.error as err:
            raise ValueError(
                f"Cannot decode {len(raw)} bytes as {kind} ({layout.format}): {err}"
            ) from err

        if len(raw) > layout.size:
            _LOGGER.debug(
                "Ignoring %d trailing bytes of %s payload", len(raw) - layout.size, kind
            )
        return values[0] if len(values) == 1 else values
