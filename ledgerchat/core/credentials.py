"""
LedgerChat Signing Credentials

Ed25519 keypairs whose public half is a record address. Used as message
senders and as transaction signers.
"""

import secrets
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .address import Address

logger = logging.getLogger(__name__)

SEED_LENGTH = 32
SIGNATURE_LENGTH = 64


class Credential:
    """
    A signing credential.

    The public key doubles as the keypair-associated address used to
    seed per-sender message addresses.
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        public_bytes = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self._address = Address(public_bytes)

    @classmethod
    def generate(cls) -> "Credential":
        """Create a fresh random credential."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Credential":
        """Rebuild a credential from its 32-byte private seed."""
        if len(seed) != SEED_LENGTH:
            raise ValueError(f"Seed must be {SEED_LENGTH} bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @classmethod
    def random_seed(cls) -> bytes:
        return secrets.token_bytes(SEED_LENGTH)

    @property
    def address(self) -> Address:
        return self._address

    def sign(self, message: bytes) -> bytes:
        """Sign message bytes, returning a 64-byte signature."""
        return self._private_key.sign(message)

    def __repr__(self) -> str:
        return f"Credential({self._address})"


def verify_signature(address: Address, signature: bytes, message: bytes) -> bool:
    """
    Check a signature against the public key held in address.

    Returns True if valid, False for a bad signature or a non-key address.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(address.raw)
        public_key.verify(signature, message)
        return True
    except (InvalidSignature, ValueError):
        logger.debug(f"Signature check failed for {address}")
        return False
