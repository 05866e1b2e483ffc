"""
LedgerChat Configuration Module

Handles loading, validation, and management of configuration settings.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .core.address import Address, DEFAULT_PROGRAM_ID
from .core.channels import DEFAULT_APPEND_RETRIES
from .core.codec import DEFAULT_RECORD_CAPACITY, MESSAGE_OVERHEAD
from .core.history import DEFAULT_MAX_STEPS
from .utils.chunking import MAX_CHAR_BYTES


@dataclass
class ProgramConfig:
    """On-ledger program settings."""
    program_id: str = ""  # base58; empty uses the built-in program id

    @property
    def address(self) -> Address:
        if not self.program_id:
            return DEFAULT_PROGRAM_ID
        return Address.from_string(self.program_id)


@dataclass
class ChainConfig:
    """Record layout and traversal settings."""
    record_capacity: int = DEFAULT_RECORD_CAPACITY
    max_payload_bytes: int = 0  # 0 = record_capacity minus record overhead
    max_traversal_steps: int = DEFAULT_MAX_STEPS
    append_retries: int = DEFAULT_APPEND_RETRIES


@dataclass
class LedgerConfig:
    """Local ledger settings."""
    path: str = "ledgerchat.db"
    latency_ms: int = 0


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    file: str = ""


@dataclass
class Config:
    """Main configuration container."""
    program: ProgramConfig = field(default_factory=ProgramConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        # Program validation
        if self.program.program_id:
            try:
                self.program.address
            except ValueError:
                errors.append("program.program_id must be a base58 encoded 32-byte address")

        # Chain validation
        if self.chain.record_capacity <= MESSAGE_OVERHEAD + MAX_CHAR_BYTES:
            errors.append(
                f"chain.record_capacity must exceed {MESSAGE_OVERHEAD + MAX_CHAR_BYTES} bytes"
            )
        payload = self.chain.max_payload_bytes
        if payload and not MAX_CHAR_BYTES <= payload <= self.chain.record_capacity - MESSAGE_OVERHEAD:
            errors.append(
                f"chain.max_payload_bytes must be between {MAX_CHAR_BYTES} and "
                f"record_capacity - {MESSAGE_OVERHEAD}"
            )
        if self.chain.max_traversal_steps < 1:
            errors.append("chain.max_traversal_steps must be at least 1")
        if self.chain.append_retries < 0:
            errors.append("chain.append_retries cannot be negative")

        # Ledger validation
        if not self.ledger.path:
            errors.append("ledger.path cannot be empty")
        if self.ledger.latency_ms < 0:
            errors.append("ledger.latency_ms cannot be negative")

        # Logging validation
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
        if self.logging.level.upper() not in valid_levels:
            errors.append(f"logging.level must be one of: {valid_levels}")

        return errors

    def save(self, path: Path):
        """Save configuration to TOML file."""
        import toml  # For writing

        data = self._to_dict()

        with open(path, "w") as f:
            toml.dump(data, f)

    def _to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization."""
        from dataclasses import asdict
        return asdict(self)


def load_config(path: Path) -> Config:
    """Load configuration from TOML file."""
    config = Config()

    if not path.exists():
        return config

    with open(path, "rb") as f:
        data = tomllib.load(f)

    # Map TOML sections to config dataclasses
    if "program" in data:
        config.program = ProgramConfig(**data["program"])

    if "chain" in data:
        config.chain = ChainConfig(**data["chain"])

    if "ledger" in data:
        config.ledger = LedgerConfig(**data["ledger"])

    if "logging" in data:
        config.logging = LoggingConfig(**data["logging"])

    return config


def create_default_config(path: Path):
    """Create a default configuration file."""
    config = Config()
    config.save(path)
