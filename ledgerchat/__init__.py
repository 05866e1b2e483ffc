"""
LedgerChat - Message board client for a programmable ledger

Channels hold append-only chains of fixed-capacity message records,
linked newest to oldest and addressed by deterministic derivation.
"""

__version__ = "0.1.0"
__author__ = "LedgerChat Project"
