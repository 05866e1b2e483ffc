"""LedgerChat Ledger Module - Runtime interface and local development ledger."""

from .interface import LedgerRuntime
from .program import ChatProgram
from .local import LocalLedger

__all__ = ["LedgerRuntime", "ChatProgram", "LocalLedger"]
