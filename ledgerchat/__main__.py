"""
LedgerChat Entry Point

Usage:
    python -m ledgerchat address NAME          # Derive a channel address
    python -m ledgerchat decode TYPE HEX       # Decode a record
    python -m ledgerchat post NAME TEXT        # Post to the local ledger
    python -m ledgerchat read NAME             # Read from the local ledger
    python -m ledgerchat config --show         # Configuration
"""

import argparse
import sys
import logging
from pathlib import Path

from . import __version__


def setup_logging(level: str, log_file: str | None = None):
    """Configure logging for the application."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers = [logging.StreamHandler()]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="ledgerchat",
        description="LedgerChat - Message board client for a programmable ledger"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"LedgerChat {__version__}"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config.toml"),
        help="Path to configuration file (default: config.toml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config, else WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    address_parser = subparsers.add_parser("address", help="Derive a channel address")
    address_parser.add_argument("name", help="Channel name")

    decode_parser = subparsers.add_parser("decode", help="Decode a hex-encoded record")
    decode_parser.add_argument("type", choices=["channel", "message"], help="Record type")
    decode_parser.add_argument("hex", help="Record bytes as hex")

    post_parser = subparsers.add_parser("post", help="Post a message to the local ledger")
    post_parser.add_argument("name", help="Channel name")
    post_parser.add_argument("text", help="Message text")
    post_parser.add_argument("--seed", help="32-byte sender seed as hex (default: random)")

    read_parser = subparsers.add_parser("read", help="Read messages from the local ledger")
    read_parser.add_argument("name", help="Channel name")
    read_parser.add_argument("--limit", "-n", type=int, default=0, help="Maximum messages to show")
    read_parser.add_argument("--width", type=int, default=72, help="Truncate message text to this width")

    config_parser = subparsers.add_parser("config", help="Configuration")
    config_parser.add_argument("--show", action="store_true", help="Show current config")
    config_parser.add_argument("--validate", action="store_true", help="Validate config")
    config_parser.add_argument("--init", action="store_true", help="Write a default config file")

    return parser


def main(argv: list[str] | None = None):
    """Main entry point for LedgerChat."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    from .config import load_config
    from .cli import commands

    if args.command == "config":
        setup_logging(args.log_level or "WARNING")
        sys.exit(commands.run_config(args))

    config = load_config(args.config)
    setup_logging(args.log_level or config.logging.level, config.logging.file or None)
    logger = logging.getLogger("ledgerchat")

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error(f"Invalid configuration: {err}")
        sys.exit(1)

    handlers = {
        "address": commands.run_address,
        "decode": commands.run_decode,
        "post": commands.run_post,
        "read": commands.run_read,
    }

    try:
        sys.exit(handlers[args.command](args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
