"""
LedgerChat Program Instructions

Wire format of the instructions the client submits and the on-ledger
program executes.

Instruction data format: <u8 tag><body>

Instruction types:
- CREATE_CHANNEL (0): ChannelRecord
- WRITE_CHUNK (1): nonce u64, part u64, MessageRecord
- APPEND_MESSAGE (2): nonce u64, part u64, expected tail, MessageRecord

APPEND_MESSAGE creates the record and moves the channel tail in the same
instruction, guarded by the tail the client last read.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .address import Address
from .codec import Reader, Writer, decode_from, encode_into
from .errors import DecodeError
from .records import ChannelRecord, MessageRecord

logger = logging.getLogger(__name__)


class InstructionKind(IntEnum):
    CREATE_CHANNEL = 0
    WRITE_CHUNK = 1
    APPEND_MESSAGE = 2


@dataclass(frozen=True)
class Instruction:
    """One program invocation: target program, ordered accounts, opaque data."""
    program_id: Address
    accounts: tuple[Address, ...]
    data: bytes


@dataclass(frozen=True)
class InstructionArgs:
    """Decoded instruction data."""
    kind: InstructionKind
    record: object
    nonce: Optional[int] = None
    part: Optional[int] = None
    expected_tail: Optional[Address] = None


def create_channel_instruction(
    program_id: Address,
    payer: Address,
    channel: Address,
    record: ChannelRecord
) -> Instruction:
    """Create a channel record at its derived address."""
    writer = Writer()
    writer.u8(InstructionKind.CREATE_CHANNEL)
    encode_into(writer, record)
    return Instruction(program_id, (payer, channel), writer.getvalue())


def write_chunk_instruction(
    program_id: Address,
    sender: Address,
    channel: Address,
    chunk: Address,
    nonce: int,
    part: int,
    record: MessageRecord
) -> Instruction:
    """Create a non-head chunk record. Does not touch the channel."""
    writer = Writer()
    writer.u8(InstructionKind.WRITE_CHUNK)
    writer.u64(nonce)
    writer.u64(part)
    encode_into(writer, record)
    return Instruction(program_id, (sender, channel, chunk), writer.getvalue())


def append_message_instruction(
    program_id: Address,
    sender: Address,
    channel: Address,
    message: Address,
    nonce: int,
    part: int,
    expected_tail: Address,
    record: MessageRecord
) -> Instruction:
    """Create the head record and point the channel tail at it."""
    writer = Writer()
    writer.u8(InstructionKind.APPEND_MESSAGE)
    writer.u64(nonce)
    writer.u64(part)
    writer.address(expected_tail)
    encode_into(writer, record)
    return Instruction(program_id, (sender, channel, message), writer.getvalue())


def decode_instruction(data: bytes) -> InstructionArgs:
    """
    Parse instruction data.

    Raises:
        DecodeError: unknown tag or malformed body
    """
    reader = Reader(data)
    tag = reader.u8()

    if tag == InstructionKind.CREATE_CHANNEL:
        return InstructionArgs(
            kind=InstructionKind.CREATE_CHANNEL,
            record=decode_from(reader, ChannelRecord),
        )

    if tag == InstructionKind.WRITE_CHUNK:
        nonce = reader.u64()
        part = reader.u64()
        return InstructionArgs(
            kind=InstructionKind.WRITE_CHUNK,
            record=decode_from(reader, MessageRecord),
            nonce=nonce,
            part=part,
        )

    if tag == InstructionKind.APPEND_MESSAGE:
        nonce = reader.u64()
        part = reader.u64()
        expected_tail = reader.address()
        return InstructionArgs(
            kind=InstructionKind.APPEND_MESSAGE,
            record=decode_from(reader, MessageRecord),
            nonce=nonce,
            part=part,
            expected_tail=expected_tail,
        )

    raise DecodeError(f"unknown instruction tag {tag}", offset=0)


def serialize_instructions(instructions: list[Instruction]) -> bytes:
    """Canonical bytes of a transaction's instructions, the message signers sign."""
    writer = Writer()
    writer.u8(len(instructions))
    for ix in instructions:
        writer.address(ix.program_id)
        writer.u8(len(ix.accounts))
        for account in ix.accounts:
            writer.address(account)
        writer.u32(len(ix.data))
        writer.raw(ix.data)
    return writer.getvalue()
