"""
LedgerChat Error Types

Every failure raised by the core carries the violation kind and, where
known, the record and channel addresses involved.
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .address import Address


class LedgerChatError(Exception):
    """Base exception for all expected LedgerChat errors."""

    kind = "error"

    def __init__(
        self,
        message: str,
        address: Optional["Address"] = None,
        channel: Optional["Address"] = None
    ):
        super().__init__(message)
        self.message = message
        self.address = address
        self.channel = channel

    def __str__(self) -> str:
        parts = [f"{self.kind}: {self.message}"]
        if self.address is not None:
            parts.append(f"record={self.address}")
        if self.channel is not None:
            parts.append(f"channel={self.channel}")
        return " ".join(parts)


class DecodeError(LedgerChatError):
    """Record bytes do not match the schema."""

    kind = "decode_error"

    def __init__(self, message: str, offset: int = 0, address: Optional["Address"] = None):
        super().__init__(message, address=address)
        self.offset = offset


class Truncated(DecodeError):
    """Fewer bytes available than the schema requires."""

    kind = "truncated"

    def __init__(self, needed: int, available: int, offset: int):
        super().__init__(
            f"needed {needed} bytes at offset {offset}, only {available} available",
            offset=offset
        )
        self.needed = needed
        self.available = available


class UnknownVariant(DecodeError):
    """Payload discriminant with no known variant."""

    kind = "unknown_variant"

    def __init__(self, tag: int, offset: int):
        super().__init__(f"unknown payload tag {tag}", offset=offset)
        self.tag = tag


class AddressDerivationError(LedgerChatError):
    """Seeds exceed the derivation bounds, or no off-curve address exists."""

    kind = "address_derivation_error"


class AddressInUse(LedgerChatError):
    """A freshly derived message address is already occupied."""

    kind = "address_in_use"


class ChainError(LedgerChatError):
    """Structural violation found while walking a channel's chain."""

    kind = "chain_error"


class MissingRecord(ChainError):
    """A pointer leads to an address with no stored data."""

    kind = "missing_record"


class CycleDetected(ChainError):
    """The chain revisits an address or exceeds the step bound."""

    kind = "cycle_detected"

    def __init__(self, message: str, steps: int, address=None, channel=None):
        super().__init__(message, address=address, channel=channel)
        self.steps = steps


class IncompleteMessage(ChainError):
    """A multi-chunk message could not be fully reassembled."""

    kind = "incomplete_message"

    def __init__(
        self,
        message: str,
        collected: int = 0,
        expected: int = 0,
        address=None,
        channel=None
    ):
        super().__init__(message, address=address, channel=channel)
        self.collected = collected
        self.expected = expected


class RejectionCode(Enum):
    """Reasons the external program refuses a transaction."""
    ACCOUNT_IN_USE = "account_in_use"
    STALE_TAIL = "stale_tail"
    MISSING_ACCOUNT = "missing_account"
    INVALID_SEEDS = "invalid_seeds"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_INSTRUCTION = "invalid_instruction"
    RECORD_TOO_LARGE = "record_too_large"


class RejectionError(LedgerChatError):
    """The ledger runtime refused a transaction."""

    kind = "rejected"

    def __init__(self, code: RejectionCode, message: str, address=None, channel=None):
        super().__init__(f"[{code.value}] {message}", address=address, channel=channel)
        self.code = code
