"""
LedgerChat Addresses

32-byte record addresses, the sentinel, and program-derived address
computation.

A derived address is the SHA-256 of the seeds, a one-byte bump, the program
id and a fixed marker. The bump is searched from 255 downward until the
digest is not a valid Ed25519 point, so no private key can sign for it.
"""

import hashlib
import logging
import struct
from dataclasses import dataclass

import base58

from .errors import AddressDerivationError

logger = logging.getLogger(__name__)

ADDRESS_LENGTH = 32
MAX_SEEDS = 16          # including the bump seed
MAX_SEED_LENGTH = 32
MAX_CHANNEL_NAME_BYTES = (MAX_SEEDS - 1) * MAX_SEED_LENGTH
PDA_MARKER = b"ProgramDerivedAddress"

# Ed25519 field and curve constants
_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


@dataclass(frozen=True)
class Address:
    """Opaque fixed-length record address. Text form is base58."""
    raw: bytes

    def __post_init__(self):
        if not isinstance(self.raw, bytes):
            raise TypeError(f"Address expects bytes, got {type(self.raw).__name__}")
        if len(self.raw) != ADDRESS_LENGTH:
            raise ValueError(f"Address must be {ADDRESS_LENGTH} bytes, got {len(self.raw)}")

    @classmethod
    def from_string(cls, text: str) -> "Address":
        """Parse a base58 address."""
        return cls(base58.b58decode(text.strip()))

    @property
    def is_sentinel(self) -> bool:
        return self.raw == SENTINEL_BYTES

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return base58.b58encode(self.raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Address({self})"


SENTINEL_BYTES = bytes(ADDRESS_LENGTH)
SENTINEL = Address(SENTINEL_BYTES)

DEFAULT_PROGRAM_ID = Address(hashlib.sha256(b"ledgerchat.program").digest())


def is_on_curve(data: bytes) -> bool:
    """
    Check whether 32 bytes decompress to a point on the Ed25519 curve.

    Decompression succeeds when x^2 = (y^2 - 1) / (d*y^2 + 1) has a square
    root mod p; the sign bit does not affect that.
    """
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    if u == 0:
        return True
    x2 = u * pow(v, _P - 2, _P) % _P
    return pow(x2, (_P - 1) // 2, _P) == 1


def _check_seeds(seeds: list[bytes]):
    if len(seeds) + 1 > MAX_SEEDS:
        raise AddressDerivationError(
            f"{len(seeds)} seeds given, at most {MAX_SEEDS - 1} allowed"
        )
    for i, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LENGTH:
            raise AddressDerivationError(
                f"seed {i} is {len(seed)} bytes, at most {MAX_SEED_LENGTH} allowed"
            )


def create_program_address(program_id: Address, seeds: list[bytes], bump: int) -> Address | None:
    """Hash seeds with one bump value. Returns None if the result is on the curve."""
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes([bump]))
    hasher.update(program_id.raw)
    hasher.update(PDA_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        return None
    return Address(digest)


def find_program_address(program_id: Address, seeds: list[bytes]) -> tuple[Address, int]:
    """
    Derive the canonical address for seeds under a program.

    Args:
        program_id: Owning program's address
        seeds: Ordered byte-string seeds

    Returns:
        (address, bump) for the highest bump yielding an off-curve digest

    Raises:
        AddressDerivationError: seeds out of bounds, or every bump lands on the curve
    """
    seeds = [bytes(s) for s in seeds]
    _check_seeds(seeds)

    for bump in range(255, -1, -1):
        address = create_program_address(program_id, seeds, bump)
        if address is not None:
            return address, bump

    raise AddressDerivationError("no off-curve address for these seeds")


def derive_address(program_id: Address, seeds: list[bytes]) -> Address:
    """Derive an address from a program id and ordered seeds."""
    address, _ = find_program_address(program_id, seeds)
    return address


def validate_channel_name(name: str):
    """Raise ValueError unless name can be used as a channel name."""
    if not name:
        raise ValueError("Channel name cannot be empty")
    if name != name.strip():
        raise ValueError("Channel name cannot have leading or trailing whitespace")


def channel_seeds(name: str) -> list[bytes]:
    """Split a channel name's UTF-8 bytes into consecutive 32-byte seeds."""
    validate_channel_name(name)
    encoded = name.encode("utf-8")
    if len(encoded) > MAX_CHANNEL_NAME_BYTES:
        raise AddressDerivationError(
            f"channel name is {len(encoded)} bytes, at most {MAX_CHANNEL_NAME_BYTES} allowed"
        )
    return [encoded[i:i + MAX_SEED_LENGTH] for i in range(0, len(encoded), MAX_SEED_LENGTH)]


def message_seeds(sender: Address, channel: Address, nonce: int, part: int) -> list[bytes]:
    """Seeds for one message chunk: sender, channel, nonce and part index."""
    return [
        sender.raw,
        channel.raw,
        struct.pack("<Q", nonce),
        struct.pack("<Q", part),
    ]


def derive_channel_address(program_id: Address, name: str) -> Address:
    """Address of the channel record for name."""
    return derive_address(program_id, channel_seeds(name))


def derive_message_address(
    program_id: Address,
    sender: Address,
    channel: Address,
    nonce: int,
    part: int = 0
) -> Address:
    """Address of one chunk record of a message."""
    return derive_address(program_id, message_seeds(sender, channel, nonce, part))
