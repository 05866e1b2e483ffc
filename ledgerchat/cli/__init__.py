"""LedgerChat Command Line Interface."""
