"""LedgerChat Utilities Module."""

from .chunking import chunk_text, join_chunks, utf8_size
from .formatting import format_address, format_size

__all__ = ["chunk_text", "join_chunks", "utf8_size", "format_address", "format_size"]
