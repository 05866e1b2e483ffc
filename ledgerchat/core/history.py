"""
LedgerChat Chain Traversal

Walks a channel's message chain from its tail, newest first, regrouping
chunk records into whole messages.
"""

import logging
from typing import AsyncIterator, Optional, TYPE_CHECKING

from .address import Address
from .codec import decode_channel, decode_message
from .errors import CycleDetected, DecodeError, IncompleteMessage, MissingRecord
from .records import ChannelRecord, ChatMessage, MessageRecord
from ..utils.chunking import join_chunks, utf8_size

if TYPE_CHECKING:
    from ..ledger.interface import LedgerRuntime

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10_000


async def read_channel(ledger: "LedgerRuntime", address: Address) -> ChannelRecord:
    """
    Fetch and decode a channel record.

    Raises:
        MissingRecord: nothing stored at address
        DecodeError: stored bytes are not a channel record
    """
    data = await ledger.get_record(address)
    if data is None:
        raise MissingRecord("channel record not found", address=address, channel=address)
    try:
        return decode_channel(data)
    except DecodeError as e:
        e.address = address
        e.channel = address
        raise


class MessageHistory:
    """
    Lazy, restartable view of a channel's messages, most recent first.

    Each iteration starts over from the channel's current tail and fetches
    one record per step. Structural problems are raised where they are
    found; messages yielded before that point have already been delivered.

    Chunk records carry no part index, so a later chunk is matched to its
    head only by sender, parts and size. A malformed chain that links a head
    into the middle of another message with the same three values is
    reassembled without error.
    """

    def __init__(self, ledger: "LedgerRuntime", channel: Address, max_steps: int = DEFAULT_MAX_STEPS):
        self.ledger = ledger
        self.channel = channel
        self.max_steps = max_steps

    def __aiter__(self) -> AsyncIterator[ChatMessage]:
        return self._walk()

    async def collect(self, limit: Optional[int] = None) -> list[ChatMessage]:
        """Gather messages into a list, stopping after limit if given."""
        messages = []
        async for message in self:
            messages.append(message)
            if limit is not None and len(messages) >= limit:
                break
        return messages

    async def _fetch_message(self, address: Address) -> MessageRecord:
        data = await self.ledger.get_record(address)
        if data is None:
            raise MissingRecord("chain points to a missing record", address=address, channel=self.channel)
        try:
            return decode_message(data)
        except DecodeError as e:
            e.address = address
            e.channel = self.channel
            raise

    async def _walk(self) -> AsyncIterator[ChatMessage]:
        channel = await read_channel(self.ledger, self.channel)
        current = channel.tail
        visited: set[Address] = set()
        steps = 0
        group: list[tuple[Address, MessageRecord]] = []

        while not current.is_sentinel:
            if current in visited:
                raise CycleDetected(
                    f"chain revisits a record after {steps} steps",
                    steps, address=current, channel=self.channel
                )
            if steps >= self.max_steps:
                raise CycleDetected(
                    f"chain longer than {self.max_steps} steps",
                    steps, address=current, channel=self.channel
                )
            visited.add(current)
            steps += 1

            record = await self._fetch_message(current)
            logger.debug(f"Step {steps}: {current} parts={record.parts} size={record.size}")

            if group:
                head_address, head = group[0]
                if not _same_message(head, record):
                    raise IncompleteMessage(
                        f"chunk {len(group) + 1} of {head.parts} missing, "
                        f"chain continues with an unrelated record at {current}",
                        collected=len(group), expected=head.parts,
                        address=head_address, channel=self.channel
                    )
            elif record.parts < 1:
                raise IncompleteMessage(
                    "record declares zero parts",
                    address=current, channel=self.channel
                )

            group.append((current, record))
            if len(group) == group[0][1].parts:
                yield self._assemble(group)
                group = []

            current = record.next

        if group:
            head_address, head = group[0]
            raise IncompleteMessage(
                f"chain ends after {len(group)} of {head.parts} chunks",
                collected=len(group), expected=head.parts,
                address=head_address, channel=self.channel
            )

    def _assemble(self, group: list[tuple[Address, MessageRecord]]) -> ChatMessage:
        head_address, head = group[0]
        text = join_chunks([record.payload.text for _, record in group])
        actual = utf8_size(text)
        if actual != head.size:
            raise IncompleteMessage(
                f"reassembled {actual} bytes, record declares {head.size}",
                collected=len(group), expected=head.parts,
                address=head_address, channel=self.channel
            )

        return ChatMessage(
            address=head_address,
            sender=head.sender,
            text=text,
            size=head.size,
            parts=head.parts,
            chunk_addresses=[address for address, _ in group],
        )


def _same_message(head: MessageRecord, record: MessageRecord) -> bool:
    """Whether record can be a later chunk of the message head starts."""
    return (
        record.sender == head.sender
        and record.parts == head.parts
        and record.size == head.size
    )
