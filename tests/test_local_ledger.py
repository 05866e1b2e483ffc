"""
Tests for LedgerChat Local Ledger and Program Rules
"""

import pytest

from ledgerchat.core.address import (
    Address,
    SENTINEL,
    derive_channel_address,
    derive_message_address,
)
from ledgerchat.core.codec import decode_channel, decode_message, encode
from ledgerchat.core.credentials import Credential
from ledgerchat.core.errors import RejectionCode, RejectionError
from ledgerchat.core.instructions import (
    Instruction,
    InstructionKind,
    append_message_instruction,
    create_channel_instruction,
    decode_instruction,
    write_chunk_instruction,
)
from ledgerchat.core.records import ChannelRecord, MessageRecord, StringPayload
from ledgerchat.ledger.local import LocalLedger


def message(sender: Credential, text: str, next: Address = SENTINEL, parts: int = 1, size=None) -> MessageRecord:
    return MessageRecord(
        sender=sender.address,
        next=next,
        payload=StringPayload(text),
        size=len(text.encode("utf-8")) if size is None else size,
        parts=parts,
    )


class TestInstructions:
    """Tests for instruction data encoding."""

    def setup_method(self):
        """Set up test fixtures."""
        self.program = Address(bytes([9]) * 32)
        self.sender = Credential.generate()
        self.channel = Address(bytes([2]) * 32)
        self.target = Address(bytes([3]) * 32)

    def test_append_round_trip(self):
        record = message(self.sender, "hello")
        ix = append_message_instruction(
            self.program, self.sender.address, self.channel, self.target,
            7, 0, SENTINEL, record
        )
        args = decode_instruction(ix.data)

        assert ix.data[0] == InstructionKind.APPEND_MESSAGE
        assert ix.accounts == (self.sender.address, self.channel, self.target)
        assert args.kind == InstructionKind.APPEND_MESSAGE
        assert args.nonce == 7
        assert args.part == 0
        assert args.expected_tail == SENTINEL
        assert args.record == record

    def test_write_chunk_round_trip(self):
        record = message(self.sender, "tail end", parts=2, size=20)
        ix = write_chunk_instruction(
            self.program, self.sender.address, self.channel, self.target, 7, 1, record
        )
        args = decode_instruction(ix.data)

        assert args.kind == InstructionKind.WRITE_CHUNK
        assert args.part == 1
        assert args.expected_tail is None
        assert args.record == record

    def test_unknown_tag(self):
        from ledgerchat.core.errors import DecodeError

        with pytest.raises(DecodeError):
            decode_instruction(b"\x07")


class TestProgramRules:
    """Tests for the program's acceptance rules, via the local ledger."""

    def setup_method(self):
        """Set up test fixtures."""
        self.ledger = LocalLedger().initialize()
        self.program = self.ledger.program_id
        self.alice = Credential.generate()
        self.bob = Credential.generate()
        self.channel = derive_channel_address(self.program, "general")

    def teardown_method(self):
        self.ledger.close()

    def create_ix(self, name="general", address=None):
        address = address or derive_channel_address(self.program, name)
        return create_channel_instruction(
            self.program, self.alice.address, address, ChannelRecord(name=name)
        )

    def append_ix(self, sender, text, nonce, expected_tail=SENTINEL, signer_address=None):
        target = derive_message_address(self.program, sender.address, self.channel, nonce, 0)
        return target, append_message_instruction(
            self.program, signer_address or sender.address, self.channel, target,
            nonce, 0, expected_tail, message(sender, text, next=expected_tail)
        )

    @pytest.mark.asyncio
    async def test_create_channel(self):
        signature = await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        data = await self.ledger.get_record(self.channel)

        assert signature
        assert len(data) == self.ledger.record_capacity
        assert decode_channel(data) == ChannelRecord(name="general")
        assert self.ledger.count_transactions() == 1

    @pytest.mark.asyncio
    async def test_create_channel_twice(self):
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([self.create_ix()], [self.alice])

        assert exc.value.code == RejectionCode.ACCOUNT_IN_USE

    @pytest.mark.asyncio
    async def test_create_channel_wrong_address(self):
        ix = self.create_ix(address=Address(bytes([5]) * 32))

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.alice])

        assert exc.value.code == RejectionCode.INVALID_SEEDS

    @pytest.mark.asyncio
    async def test_payer_must_sign(self):
        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([self.create_ix()], [self.bob])

        assert exc.value.code == RejectionCode.MISSING_SIGNATURE

    @pytest.mark.asyncio
    async def test_no_signers(self):
        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([self.create_ix()], [])

        assert exc.value.code == RejectionCode.MISSING_SIGNATURE

    @pytest.mark.asyncio
    async def test_empty_transaction(self):
        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([], [self.alice])

        assert exc.value.code == RejectionCode.INVALID_INSTRUCTION

    @pytest.mark.asyncio
    async def test_wrong_program(self):
        ix = Instruction(Address(bytes([1]) * 32), self.create_ix().accounts, self.create_ix().data)

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.alice])

        assert exc.value.code == RejectionCode.INVALID_INSTRUCTION

    @pytest.mark.asyncio
    async def test_append_moves_tail(self):
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        target, ix = self.append_ix(self.alice, "hello", nonce=1)

        await self.ledger.submit_transaction([ix], [self.alice])

        channel = decode_channel(await self.ledger.get_record(self.channel))
        assert channel.tail == target
        assert decode_message(await self.ledger.get_record(target)).payload.text == "hello"

    @pytest.mark.asyncio
    async def test_append_stale_tail_writes_nothing(self):
        """A stale expected tail rejects the record and the tail move together."""
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        first, ix = self.append_ix(self.alice, "first", nonce=1)
        await self.ledger.submit_transaction([ix], [self.alice])

        stale, ix = self.append_ix(self.bob, "stale", nonce=2, expected_tail=SENTINEL)
        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.bob])

        assert exc.value.code == RejectionCode.STALE_TAIL
        assert await self.ledger.get_record(stale) is None
        assert decode_channel(await self.ledger.get_record(self.channel)).tail == first

    @pytest.mark.asyncio
    async def test_append_to_missing_channel(self):
        _, ix = self.append_ix(self.alice, "hello", nonce=1)

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.alice])

        assert exc.value.code == RejectionCode.MISSING_ACCOUNT

    @pytest.mark.asyncio
    async def test_sender_must_sign(self):
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        _, ix = self.append_ix(self.alice, "forged", nonce=1)

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.bob])

        assert exc.value.code == RejectionCode.MISSING_SIGNATURE

    @pytest.mark.asyncio
    async def test_record_sender_must_match_signer(self):
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        _, ix = self.append_ix(self.alice, "forged", nonce=1, signer_address=self.bob.address)

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.bob])

        assert exc.value.code == RejectionCode.INVALID_INSTRUCTION

    @pytest.mark.asyncio
    async def test_message_address_reuse(self):
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        first, ix = self.append_ix(self.alice, "one", nonce=1)
        await self.ledger.submit_transaction([ix], [self.alice])

        _, ix = self.append_ix(self.alice, "two", nonce=1, expected_tail=first)
        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.alice])

        assert exc.value.code == RejectionCode.ACCOUNT_IN_USE

    @pytest.mark.asyncio
    async def test_chunk_part_zero_refused(self):
        await self.ledger.submit_transaction([self.create_ix()], [self.alice])
        target = derive_message_address(self.program, self.alice.address, self.channel, 1, 0)
        ix = write_chunk_instruction(
            self.program, self.alice.address, self.channel, target, 1, 0,
            message(self.alice, "chunk", parts=2, size=10)
        )

        with pytest.raises(RejectionError) as exc:
            await self.ledger.submit_transaction([ix], [self.alice])

        assert exc.value.code == RejectionCode.INVALID_INSTRUCTION

    @pytest.mark.asyncio
    async def test_transaction_is_atomic(self):
        """One refused instruction rolls back the ones before it."""
        ixs = [self.create_ix("first"), self.create_ix("first")]

        with pytest.raises(RejectionError):
            await self.ledger.submit_transaction(ixs, [self.alice])

        assert self.ledger.count_records() == 0
        assert self.ledger.count_transactions() == 0

    @pytest.mark.asyncio
    async def test_record_too_large(self):
        ledger = LocalLedger(record_capacity=150).initialize()
        channel = derive_channel_address(ledger.program_id, "general")
        await ledger.submit_transaction(
            [create_channel_instruction(ledger.program_id, self.alice.address, channel, ChannelRecord("general"))],
            [self.alice]
        )
        target = derive_message_address(ledger.program_id, self.alice.address, channel, 1, 0)
        ix = append_message_instruction(
            ledger.program_id, self.alice.address, channel, target, 1, 0, SENTINEL,
            message(self.alice, "x" * 100)
        )

        with pytest.raises(RejectionError) as exc:
            await ledger.submit_transaction([ix], [self.alice])

        assert exc.value.code == RejectionCode.RECORD_TOO_LARGE
        ledger.close()


class TestLocalLedgerStorage:
    """Tests for storage helpers and persistence."""

    def setup_method(self):
        """Set up test fixtures."""
        self.ledger = LocalLedger().initialize()

    def teardown_method(self):
        self.ledger.close()

    @pytest.mark.asyncio
    async def test_missing_record(self):
        assert await self.ledger.get_record(Address(bytes([4]) * 32)) is None

    @pytest.mark.asyncio
    async def test_raw_record_verbatim(self):
        address = Address(bytes([4]) * 32)
        self.ledger.put_raw_record(address, b"\x01\x02")

        assert await self.ledger.get_record(address) == b"\x01\x02"

    @pytest.mark.asyncio
    async def test_delete_record(self):
        address = Address(bytes([4]) * 32)
        self.ledger.put_raw_record(address, encode(ChannelRecord("x")))

        assert self.ledger.delete_record(address) is True
        assert self.ledger.delete_record(address) is False
        assert await self.ledger.get_record(address) is None

    def test_uninitialized(self):
        with pytest.raises(RuntimeError):
            LocalLedger().count_records()

    @pytest.mark.asyncio
    async def test_file_backed_persistence(self, tmp_path):
        path = str(tmp_path / "sub" / "ledger.db")
        alice = Credential.generate()
        ledger = LocalLedger(path).initialize()
        channel = derive_channel_address(ledger.program_id, "general")
        await ledger.submit_transaction(
            [create_channel_instruction(ledger.program_id, alice.address, channel, ChannelRecord("general"))],
            [alice]
        )
        ledger.close()

        reopened = LocalLedger(path).initialize()
        data = await reopened.get_record(channel)
        reopened.close()

        assert decode_channel(data).name == "general"
