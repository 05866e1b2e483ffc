"""LedgerChat Core Module - Records, codec, addresses, and channel service."""

from .address import Address, SENTINEL, DEFAULT_PROGRAM_ID, derive_address
from .records import ChannelRecord, MessageRecord, StringPayload, ChatMessage
from .codec import encode, decode
from .credentials import Credential
from .history import MessageHistory
from .channels import ChannelService

__all__ = [
    "Address",
    "SENTINEL",
    "DEFAULT_PROGRAM_ID",
    "derive_address",
    "ChannelRecord",
    "MessageRecord",
    "StringPayload",
    "ChatMessage",
    "encode",
    "decode",
    "Credential",
    "MessageHistory",
    "ChannelService",
]
