"""
LedgerChat Record Codec

Binary layout shared with the on-ledger program. Must match it byte for byte.

Layout rules:
- Fields in fixed schema order, no per-struct type tags
- u8 / u32 / u64 little-endian fixed-width integers
- Strings: u32 byte length + UTF-8 bytes
- Addresses: 32 raw bytes
- Payload: u8 discriminant + variant body

Bytes following the last field are ignored, since record storage is
fixed-capacity and may be zero-padded.
"""

import struct
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Optional

from .address import Address, ADDRESS_LENGTH
from .errors import DecodeError, Truncated, UnknownVariant
from .records import ChannelRecord, MessageRecord, StringPayload

DEFAULT_RECORD_CAPACITY = 1200  # bytes per record slot
U32_MAX = 2 ** 32 - 1
U64_MAX = 2 ** 64 - 1


class Writer:
    """Append-only encode buffer."""

    def __init__(self):
        self._buf = bytearray()

    def u8(self, value: int):
        if not 0 <= value <= 0xFF:
            raise ValueError(f"u8 out of range: {value}")
        self._buf.append(value)

    def u32(self, value: int):
        if not 0 <= value <= U32_MAX:
            raise ValueError(f"u32 out of range: {value}")
        self._buf += struct.pack("<I", value)

    def u64(self, value: int):
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"u64 out of range: {value}")
        self._buf += struct.pack("<Q", value)

    def address(self, value: Address):
        if not isinstance(value, Address):
            raise TypeError(f"expected Address, got {type(value).__name__}")
        self._buf += value.raw

    def string(self, value: str):
        encoded = value.encode("utf-8")
        self.u32(len(encoded))
        self._buf += encoded

    def raw(self, data: bytes):
        self._buf += data

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class Reader:
    """Bounds-checked decode cursor."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = bytes(data)
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def take(self, count: int) -> bytes:
        if count > self.remaining:
            raise Truncated(count, self.remaining, self._offset)
        chunk = self._data[self._offset:self._offset + count]
        self._offset += count
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self.take(8))[0]

    def address(self) -> Address:
        return Address(self.take(ADDRESS_LENGTH))

    def string(self) -> str:
        start = self._offset
        length = self.u32()
        data = self.take(length)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid UTF-8 in string field: {e.reason}", offset=start) from None


def encode_payload(writer: Writer, payload) -> None:
    """Write the discriminant followed by the variant body."""
    if isinstance(payload, StringPayload):
        writer.u8(payload.kind)
        writer.string(payload.text)
    else:
        raise TypeError(f"unsupported payload type: {type(payload).__name__}")


def decode_payload(reader: Reader):
    """Read a payload, dispatching on its discriminant."""
    offset = reader.offset
    tag = reader.u8()
    if tag == StringPayload.kind:
        return StringPayload(reader.string())
    raise UnknownVariant(tag, offset)


@dataclass(frozen=True)
class FieldRule:
    """How one field is written and read. min_width is the fixed part in bytes."""
    name: str
    min_width: int
    encode: Callable[[Writer, Any], None]
    decode: Callable[[Reader], Any]


U64 = FieldRule("u64", 8, Writer.u64, Reader.u64)
ADDRESS = FieldRule("address", ADDRESS_LENGTH, Writer.address, Reader.address)
STRING = FieldRule("string", 4, Writer.string, Reader.string)
PAYLOAD = FieldRule("payload", 1 + 4, encode_payload, decode_payload)


CHANNEL_SCHEMA = (
    ("name", STRING),
    ("tail", ADDRESS),
)

MESSAGE_SCHEMA = (
    ("sender", ADDRESS),
    ("next", ADDRESS),
    ("payload", PAYLOAD),
    ("size", U64),
    ("parts", U64),
)

SCHEMAS = MappingProxyType({
    ChannelRecord: CHANNEL_SCHEMA,
    MessageRecord: MESSAGE_SCHEMA,
})

# Bytes a MessageRecord takes besides its payload text
MESSAGE_OVERHEAD = sum(rule.min_width for _, rule in MESSAGE_SCHEMA)


def _schema_for(record_type: type) -> tuple:
    try:
        return SCHEMAS[record_type]
    except KeyError:
        raise TypeError(f"no schema for {record_type.__name__}") from None


def encode_into(writer: Writer, record) -> None:
    """Write record's fields in schema order."""
    for name, rule in _schema_for(type(record)):
        rule.encode(writer, getattr(record, name))


def encode(record) -> bytes:
    """Encode a ChannelRecord or MessageRecord."""
    writer = Writer()
    encode_into(writer, record)
    return writer.getvalue()


def decode_from(reader: Reader, record_type: type):
    """Read a record of record_type from the reader's position."""
    values = {}
    for name, rule in _schema_for(record_type):
        values[name] = rule.decode(reader)
    return record_type(**values)


def decode(record_type: type, data: bytes):
    """
    Decode bytes into a record.

    Raises:
        Truncated: data ends before the schema does
        UnknownVariant: payload tag is not recognised
        DecodeError: other malformed content
    """
    return decode_from(Reader(data), record_type)


def decode_channel(data: bytes) -> ChannelRecord:
    return decode(ChannelRecord, data)


def decode_message(data: bytes) -> MessageRecord:
    return decode(MessageRecord, data)


def max_payload_bytes(record_capacity: int, override: Optional[int] = None) -> int:
    """Largest chunk of text (in UTF-8 bytes) a message record can carry."""
    if override:
        return override
    return record_capacity - MESSAGE_OVERHEAD
