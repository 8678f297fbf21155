"""Payload decoders."""

from .struct_entry_decoder import StructEntryDecoder

__all__ = ["StructEntryDecoder"]
