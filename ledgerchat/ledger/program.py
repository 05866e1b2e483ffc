"""
LedgerChat Program Rules

Reference implementation of the on-ledger program that owns channel and
message records. Applies decoded instructions to a record store and raises
RejectionError for anything it refuses. The caller is responsible for
rolling back the whole transaction on rejection.
"""

import logging
from typing import Optional, Protocol

from ..core.address import Address, derive_channel_address, derive_message_address
from ..core.codec import DEFAULT_RECORD_CAPACITY, decode_channel, encode
from ..core.errors import (
    AddressDerivationError,
    DecodeError,
    RejectionCode,
    RejectionError,
)
from ..core.records import ChannelRecord
from ..core.instructions import Instruction, InstructionArgs, InstructionKind, decode_instruction

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Transactional view of the ledger's record storage."""

    def get(self, address: Address) -> Optional[bytes]:
        ...

    def put(self, address: Address, data: bytes) -> None:
        ...


class ChatProgram:
    """
    Executes LedgerChat instructions.

    Enforces:
    - Records live only at addresses derived from their seeds
    - Records are created once; an occupied address is refused
    - Message senders signed the transaction
    - Encoded records fit the record capacity
    - The channel tail only moves from the value the client read
    """

    def __init__(self, program_id: Address, record_capacity: int = DEFAULT_RECORD_CAPACITY):
        self.program_id = program_id
        self.record_capacity = record_capacity

    def process(self, instruction: Instruction, signers: set[Address], store: RecordStore):
        """Apply one instruction."""
        if instruction.program_id != self.program_id:
            raise RejectionError(
                RejectionCode.INVALID_INSTRUCTION,
                f"instruction targets program {instruction.program_id}"
            )

        try:
            args = decode_instruction(instruction.data)
        except DecodeError as e:
            raise RejectionError(RejectionCode.INVALID_INSTRUCTION, f"bad instruction data: {e}") from e

        if args.kind == InstructionKind.CREATE_CHANNEL:
            self._create_channel(instruction.accounts, args, signers, store)
        elif args.kind == InstructionKind.WRITE_CHUNK:
            self._write_chunk(instruction.accounts, args, signers, store)
        else:
            self._append_message(instruction.accounts, args, signers, store)

    def _create_channel(self, accounts, args: InstructionArgs, signers, store):
        if len(accounts) != 2:
            raise RejectionError(RejectionCode.INVALID_INSTRUCTION, "create channel expects 2 accounts")
        payer, channel = accounts
        record: ChannelRecord = args.record

        if payer not in signers:
            raise RejectionError(RejectionCode.MISSING_SIGNATURE, "payer did not sign", address=payer)

        try:
            expected = derive_channel_address(self.program_id, record.name)
        except (AddressDerivationError, ValueError) as e:
            raise RejectionError(RejectionCode.INVALID_SEEDS, str(e), address=channel) from e
        if expected != channel:
            raise RejectionError(
                RejectionCode.INVALID_SEEDS,
                f"channel '{record.name}' does not derive to this address",
                address=channel
            )

        if store.get(channel) is not None:
            raise RejectionError(RejectionCode.ACCOUNT_IN_USE, "channel already exists", address=channel)
        if not record.tail.is_sentinel:
            raise RejectionError(
                RejectionCode.INVALID_INSTRUCTION, "new channel must have an empty tail", address=channel
            )

        store.put(channel, self._fit(encode(record), channel))
        logger.debug(f"Program created channel '{record.name}' at {channel}")

    def _check_message(self, accounts, args: InstructionArgs, signers, store):
        """Common checks for chunk and head records. Returns (channel address, channel, target)."""
        if len(accounts) != 3:
            raise RejectionError(RejectionCode.INVALID_INSTRUCTION, "message instruction expects 3 accounts")
        sender, channel_address, target = accounts
        record = args.record

        if sender not in signers:
            raise RejectionError(RejectionCode.MISSING_SIGNATURE, "sender did not sign", address=sender)
        if record.sender != sender:
            raise RejectionError(
                RejectionCode.INVALID_INSTRUCTION, "record sender is not the signing account", address=target
            )
        if record.parts < 1:
            raise RejectionError(RejectionCode.INVALID_INSTRUCTION, "message must have at least one part")

        channel_data = store.get(channel_address)
        if channel_data is None:
            raise RejectionError(
                RejectionCode.MISSING_ACCOUNT, "channel does not exist", channel=channel_address
            )
        try:
            channel = decode_channel(channel_data)
        except DecodeError as e:
            raise RejectionError(
                RejectionCode.INVALID_INSTRUCTION, f"channel account unreadable: {e}", channel=channel_address
            ) from e

        try:
            expected = derive_message_address(
                self.program_id, sender, channel_address, args.nonce, args.part
            )
        except AddressDerivationError as e:
            raise RejectionError(RejectionCode.INVALID_SEEDS, str(e), address=target) from e
        if expected != target:
            raise RejectionError(
                RejectionCode.INVALID_SEEDS, "message seeds do not derive to this address", address=target
            )

        if store.get(target) is not None:
            raise RejectionError(
                RejectionCode.ACCOUNT_IN_USE, "message address already in use",
                address=target, channel=channel_address
            )

        return channel_address, channel, target

    def _write_chunk(self, accounts, args: InstructionArgs, signers, store):
        channel_address, _, target = self._check_message(accounts, args, signers, store)
        if not 1 <= args.part < args.record.parts:
            raise RejectionError(
                RejectionCode.INVALID_INSTRUCTION,
                f"chunk part {args.part} outside 1..{args.record.parts - 1}",
                address=target
            )

        store.put(target, self._fit(encode(args.record), target))
        logger.debug(f"Program wrote chunk {args.part}/{args.record.parts} at {target}")

    def _append_message(self, accounts, args: InstructionArgs, signers, store):
        channel_address, channel, target = self._check_message(accounts, args, signers, store)
        if args.part != 0:
            raise RejectionError(
                RejectionCode.INVALID_INSTRUCTION, "appended record must be part 0", address=target
            )
        if channel.tail != args.expected_tail:
            raise RejectionError(
                RejectionCode.STALE_TAIL,
                f"channel tail is {channel.tail}, expected {args.expected_tail}",
                address=target, channel=channel_address
            )

        store.put(target, self._fit(encode(args.record), target))
        updated = ChannelRecord(name=channel.name, tail=target)
        store.put(channel_address, self._fit(encode(updated), channel_address))
        logger.debug(f"Program appended {target} to channel '{channel.name}'")

    def _fit(self, data: bytes, address: Address) -> bytes:
        if len(data) > self.record_capacity:
            raise RejectionError(
                RejectionCode.RECORD_TOO_LARGE,
                f"record is {len(data)} bytes, capacity {self.record_capacity}",
                address=address
            )
        return data
