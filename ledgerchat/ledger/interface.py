"""
LedgerChat Ledger Runtime Interface

The narrow surface the client needs from a ledger: read a record, submit a
transaction, derive an address, and the size of a record slot.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..core.address import Address, derive_address
from ..core.codec import DEFAULT_RECORD_CAPACITY
from ..core.credentials import Credential
from ..core.instructions import Instruction


class LedgerRuntime(ABC):
    """
    Ledger connection used by the channel service.

    Each coroutine is a single suspension point. Implementations retry
    their own transient failures (timeouts, unconfirmed transactions);
    callers only see final outcomes.
    """

    @abstractmethod
    async def get_record(self, address: Address) -> Optional[bytes]:
        """Return the bytes stored at address, or None if nothing is there."""

    @abstractmethod
    async def submit_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Credential]
    ) -> str:
        """
        Submit instructions as one all-or-nothing transaction.

        Returns:
            Transaction signature

        Raises:
            RejectionError: the program refused the transaction
        """

    @property
    def record_capacity(self) -> int:
        """Size in bytes of every record slot on this ledger."""
        return DEFAULT_RECORD_CAPACITY

    def derive_address(self, program_id: Address, seeds: list[bytes]) -> Address:
        """Derive a program address. Pure; no ledger round trip needed."""
        return derive_address(program_id, seeds)
