"""
LedgerChat Channel Service

Creates channels, appends messages (chunking large ones) and exposes each
channel's history.
"""

import asyncio
import logging
import time
from typing import Optional, TYPE_CHECKING

from .address import Address, DEFAULT_PROGRAM_ID, channel_seeds, message_seeds
from .codec import max_payload_bytes
from .credentials import Credential
from .errors import AddressInUse, RejectionCode, RejectionError
from .history import DEFAULT_MAX_STEPS, MessageHistory, read_channel
from .records import ChannelRecord, MessageRecord, StringPayload
from .instructions import (
    append_message_instruction,
    create_channel_instruction,
    write_chunk_instruction,
)
from ..utils.chunking import chunk_text, utf8_size

if TYPE_CHECKING:
    from ..config import Config
    from ..ledger.interface import LedgerRuntime

logger = logging.getLogger(__name__)

DEFAULT_APPEND_RETRIES = 3


class ChannelService:
    """
    Channel operations against a ledger runtime.

    Features:
    - Idempotent channel creation
    - Message append with chunking across linked records
    - Compare-and-set tail update, retried whole on a lost race
    - Lazy history traversal with cycle and consistency checks

    Appends to one channel through one service are serialized. The service
    holds no ledger state of its own.
    """

    def __init__(
        self,
        ledger: "LedgerRuntime",
        program_id: Address = DEFAULT_PROGRAM_ID,
        max_payload: Optional[int] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        append_retries: int = DEFAULT_APPEND_RETRIES,
        payer: Optional[Credential] = None
    ):
        """
        Initialize channel service.

        Args:
            ledger: Ledger runtime to read from and submit to
            program_id: Address of the chat program
            max_payload: Maximum chunk size in bytes (default: the ledger's record
                capacity minus overhead)
            max_steps: Traversal step bound
            append_retries: Extra attempts when the channel tail moves mid-append
            payer: Default signer for channel creation
        """
        self.ledger = ledger
        self.program_id = program_id
        self.max_payload = max_payload or max_payload_bytes(ledger.record_capacity)
        self.max_steps = max_steps
        self.append_retries = append_retries
        self.payer = payer

        # Per-channel append locks, dropped when no append holds or awaits them
        self._locks: dict[Address, asyncio.Lock] = {}
        self._lock_users: dict[Address, int] = {}
        self._last_nonce = 0

        logger.debug(
            f"ChannelService initialized: program={program_id}, "
            f"max_payload={self.max_payload}, max_steps={max_steps}"
        )

    @classmethod
    def from_config(
        cls,
        ledger: "LedgerRuntime",
        config: "Config",
        payer: Optional[Credential] = None
    ) -> "ChannelService":
        """Build a service from loaded configuration."""
        return cls(
            ledger,
            program_id=config.program.address,
            max_payload=max_payload_bytes(config.chain.record_capacity, config.chain.max_payload_bytes),
            max_steps=config.chain.max_traversal_steps,
            append_retries=config.chain.append_retries,
            payer=payer,
        )

    def channel_address(self, name: str) -> Address:
        """Derive the address of the channel called name."""
        return self.ledger.derive_address(self.program_id, channel_seeds(name))

    def message_address(self, sender: Address, channel: Address, nonce: int, part: int = 0) -> Address:
        """Derive the address of one message chunk."""
        return self.ledger.derive_address(
            self.program_id, message_seeds(sender, channel, nonce, part)
        )

    async def get_channel(self, channel: Address) -> ChannelRecord:
        """Read and decode a channel record."""
        return await read_channel(self.ledger, channel)

    async def ensure_channel(self, name: str, payer: Optional[Credential] = None) -> Address:
        """
        Create the channel called name unless it already exists.

        Safe to call repeatedly or concurrently: a creation refused because
        the address is already occupied counts as success.

        Returns:
            The channel address
        """
        payer = payer or self.payer
        if payer is None:
            raise ValueError("ensure_channel needs a payer credential")

        address = self.channel_address(name)
        if await self.ledger.get_record(address) is not None:
            logger.debug(f"Channel '{name}' already exists at {address}")
            return address

        record = ChannelRecord(name=name)
        ix = create_channel_instruction(self.program_id, payer.address, address, record)
        try:
            await self.ledger.submit_transaction([ix], [payer])
            logger.info(f"Created channel '{name}' at {address}")
        except RejectionError as e:
            if e.code != RejectionCode.ACCOUNT_IN_USE:
                raise
            logger.debug(f"Channel '{name}' created concurrently by another client")

        return address

    def list_messages(self, channel: Address) -> MessageHistory:
        """Messages in channel, most recent first. Iterate with `async for`."""
        return MessageHistory(self.ledger, channel, self.max_steps)

    async def append_message(
        self,
        channel: Address,
        sender: Credential,
        text: str,
        nonce: Optional[int] = None
    ) -> Address:
        """
        Append text to channel as sender.

        Text larger than one record is split into chunks linked newest to
        oldest, and only the first chunk becomes the channel tail. The head
        record and the tail update land in one transaction; the other chunks
        are written beforehand, one transaction each.

        If the call is cancelled, or an attempt loses a tail race, chunks
        already written stay on the ledger unreachable from the tail. They
        are never traversed, but they are not reclaimed either.

        Args:
            channel: Channel address
            sender: Signing credential of the author
            text: Message text
            nonce: Address seed for this message (default: current time in microseconds)

        Returns:
            Address of the message's first chunk

        Raises:
            AddressInUse: a derived chunk address is already occupied
            MissingRecord: channel does not exist
            RejectionError: refused by the program, or tail kept moving after every retry
        """
        lock = self._locks.setdefault(channel, asyncio.Lock())
        self._lock_users[channel] = self._lock_users.get(channel, 0) + 1
        try:
            async with lock:
                return await self._append_with_retry(channel, sender, text, nonce)
        finally:
            self._lock_users[channel] -= 1
            if not self._lock_users[channel]:
                del self._lock_users[channel]
                del self._locks[channel]

    async def _append_with_retry(
        self,
        channel: Address,
        sender: Credential,
        text: str,
        nonce: Optional[int]
    ) -> Address:
        if nonce is None:
            nonce = self._next_nonce()

        attempt = 0
        while True:
            try:
                return await self._append_once(channel, sender, text, nonce)
            except RejectionError as e:
                if e.code != RejectionCode.STALE_TAIL or attempt >= self.append_retries:
                    raise
                attempt += 1
                logger.warning(
                    f"Tail of {channel} moved during append, retrying "
                    f"({attempt}/{self.append_retries})"
                )
                nonce = self._next_nonce(after=nonce)

    async def _append_once(self, channel: Address, sender: Credential, text: str, nonce: int) -> Address:
        chunks = chunk_text(text, self.max_payload)
        parts = len(chunks)
        size = utf8_size(text)

        addresses = [
            self.message_address(sender.address, channel, nonce, part)
            for part in range(parts)
        ]
        for address in addresses:
            if await self.ledger.get_record(address) is not None:
                raise AddressInUse(
                    "derived message address already holds a record",
                    address=address, channel=channel
                )

        channel_record = await self.get_channel(channel)
        expected_tail = channel_record.tail

        # Chain grows backward: the last chunk links to the old tail
        records: list[Optional[MessageRecord]] = [None] * parts
        next_address = expected_tail
        for part in reversed(range(parts)):
            records[part] = MessageRecord(
                sender=sender.address,
                next=next_address,
                payload=StringPayload(chunks[part]),
                size=size,
                parts=parts,
            )
            next_address = addresses[part]

        for part in reversed(range(1, parts)):
            ix = write_chunk_instruction(
                self.program_id, sender.address, channel, addresses[part],
                nonce, part, records[part]
            )
            await self._submit([ix], sender, channel)

        head = append_message_instruction(
            self.program_id, sender.address, channel, addresses[0],
            nonce, 0, expected_tail, records[0]
        )
        try:
            await self._submit([head], sender, channel)
        except RejectionError:
            if parts > 1:
                logger.warning(f"Append to {channel} failed, {parts - 1} chunk records orphaned")
            raise

        logger.info(f"Appended {size}-byte message in {parts} part(s) to {channel} at {addresses[0]}")
        return addresses[0]

    async def _submit(self, instructions, signer: Credential, channel: Address):
        try:
            return await self.ledger.submit_transaction(instructions, [signer])
        except RejectionError as e:
            if e.code == RejectionCode.ACCOUNT_IN_USE:
                raise AddressInUse(
                    "message address taken before it could be written",
                    address=e.address, channel=channel
                ) from e
            raise

    def _next_nonce(self, after: int = 0) -> int:
        """Microsecond timestamp, strictly increasing across calls."""
        nonce = max(int(time.time() * 1_000_000), self._last_nonce + 1, after + 1)
        self._last_nonce = nonce
        return nonce
