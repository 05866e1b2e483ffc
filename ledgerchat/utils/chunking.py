"""
LedgerChat Message Chunking

Splits message text into pieces that each fit one message record.
"""

import logging

logger = logging.getLogger(__name__)

# Longest UTF-8 encoding of a single character
MAX_CHAR_BYTES = 4


def utf8_size(text: str) -> int:
    """Byte length of text encoded as UTF-8."""
    return len(text.encode("utf-8"))


def chunk_text(text: str, limit: int) -> list[str]:
    """
    Split text into chunks whose UTF-8 encoding is at most limit bytes.

    Splits only on character boundaries so every chunk is valid UTF-8.
    Pure ASCII text yields ceil(len / limit) chunks; multi-byte text may
    need one or two more.

    Args:
        text: Message text
        limit: Maximum chunk size in bytes

    Returns:
        Chunks in reading order. Empty text gives a single empty chunk.
    """
    if limit < MAX_CHAR_BYTES:
        raise ValueError(f"Chunk limit must be at least {MAX_CHAR_BYTES} bytes")

    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return [text]

    chunks = []
    start = 0
    while start < len(encoded):
        end = min(start + limit, len(encoded))
        # Back off to a character boundary (continuation bytes are 10xxxxxx)
        while end < len(encoded) and (encoded[end] & 0xC0) == 0x80:
            end -= 1
        chunks.append(encoded[start:end].decode("utf-8"))
        start = end

    logger.debug(f"Split {len(encoded)} bytes into {len(chunks)} chunks of <= {limit}")
    return chunks


def join_chunks(chunks: list[str]) -> str:
    """Reassemble chunks produced by chunk_text."""
    return "".join(chunks)
