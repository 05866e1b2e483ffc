"""
LedgerChat Record Models

Dataclasses for the two on-ledger record kinds and the message payload
variants.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union

from .address import Address, SENTINEL


class PayloadKind(IntEnum):
    """Payload discriminants. Values are part of the wire format."""
    STRING = 0


@dataclass(frozen=True)
class StringPayload:
    """Plain UTF-8 text."""
    text: str = ""

    kind = PayloadKind.STRING


# Tagged union of every payload variant this client understands
Payload = Union[StringPayload]


@dataclass(frozen=True)
class ChannelRecord:
    """A named channel and the address of its newest message record."""
    name: str
    tail: Address = SENTINEL

    @property
    def is_empty(self) -> bool:
        return self.tail.is_sentinel


@dataclass(frozen=True)
class MessageRecord:
    """One message, or one chunk of a multi-record message."""
    sender: Address
    next: Address = SENTINEL
    payload: Payload = field(default_factory=StringPayload)
    size: int = 0
    parts: int = 1


@dataclass
class ChatMessage:
    """A logical message reassembled from one or more chunk records."""
    address: Address            # first (newest) chunk
    sender: Address
    text: str
    size: int
    parts: int
    chunk_addresses: list[Address] = field(default_factory=list)
