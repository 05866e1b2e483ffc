"""
LedgerChat CLI Commands

Subcommand handlers. Each returns a process exit code.
"""

import asyncio
import logging
from pathlib import Path

from ..config import Config, load_config, create_default_config
from ..core.channels import ChannelService
from ..core.codec import decode
from ..core.credentials import Credential
from ..core.errors import LedgerChatError
from ..core.records import ChannelRecord, MessageRecord
from ..ledger.local import LocalLedger
from ..utils.formatting import format_address, format_size, truncate

logger = logging.getLogger(__name__)

RECORD_TYPES = {
    "channel": ChannelRecord,
    "message": MessageRecord,
}


def open_ledger(config: Config) -> LocalLedger:
    """Open the local ledger named in config."""
    ledger = LocalLedger(
        config.ledger.path,
        program_id=config.program.address,
        record_capacity=config.chain.record_capacity,
        latency_ms=config.ledger.latency_ms,
    )
    return ledger.initialize()


def run_address(args, config: Config) -> int:
    """Print the derived address of a channel."""
    ledger = LocalLedger(program_id=config.program.address)
    service = ChannelService.from_config(ledger, config)
    try:
        print(service.channel_address(args.name))
    except (LedgerChatError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    return 0


def run_decode(args, config: Config) -> int:
    """Decode a hex-encoded record and print its fields."""
    try:
        data = bytes.fromhex(args.hex)
    except ValueError:
        print("Error: record must be given as hex")
        return 1

    try:
        record = decode(RECORD_TYPES[args.type], data)
    except LedgerChatError as e:
        print(f"Error: {e}")
        return 1

    if isinstance(record, ChannelRecord):
        print(f"name:   {record.name}")
        print(f"tail:   {format_address(record.tail)}")
    else:
        print(f"sender: {format_address(record.sender)}")
        print(f"next:   {format_address(record.next)}")
        print(f"text:   {record.payload.text}")
        print(f"size:   {record.size}")
        print(f"parts:  {record.parts}")
    return 0


async def _post(args, config: Config) -> int:
    ledger = open_ledger(config)
    try:
        if args.seed:
            sender = Credential.from_seed(bytes.fromhex(args.seed))
        else:
            sender = Credential.generate()
        service = ChannelService.from_config(ledger, config, payer=sender)

        channel = await service.ensure_channel(args.name)
        address = await service.append_message(channel, sender, args.text)
        print(f"Posted to '{args.name}' as {format_address(sender.address, short=True)}: {address}")
        return 0
    finally:
        ledger.close()


async def _read(args, config: Config) -> int:
    ledger = open_ledger(config)
    try:
        service = ChannelService.from_config(ledger, config)
        channel = service.channel_address(args.name)

        count = 0
        async for message in service.list_messages(channel):
            parts = f" [{message.parts} parts]" if message.parts > 1 else ""
            print(
                f"{format_address(message.sender, short=True)} "
                f"({format_size(message.size)}{parts}): {truncate(message.text, args.width)}"
            )
            count += 1
            if args.limit and count >= args.limit:
                break

        if count == 0:
            print(f"No messages in '{args.name}'.")
        return 0
    finally:
        ledger.close()


def run_post(args, config: Config) -> int:
    """Ensure a channel exists on the local ledger and post a message."""
    try:
        return asyncio.run(_post(args, config))
    except (LedgerChatError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def run_read(args, config: Config) -> int:
    """List a channel's messages, newest first."""
    try:
        return asyncio.run(_read(args, config))
    except (LedgerChatError, ValueError) as e:
        print(f"Error: {e}")
        return 1


def run_config(args) -> int:
    """
    Show, validate or create the configuration file.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    config_path = getattr(args, 'config', Path('config.toml'))

    if getattr(args, 'init', False):
        if config_path.exists():
            print(f"{config_path} already exists.")
            return 1
        create_default_config(config_path)
        print(f"Wrote default configuration to {config_path}")
        return 0

    config = load_config(config_path)

    if getattr(args, 'validate', False):
        errors = config.validate()
        if errors:
            print("Configuration errors:")
            for err in errors:
                print(f"  - {err}")
            return 1
        print("Configuration is valid.")
        return 0

    print(config_to_toml(config))
    return 0


def config_to_toml(config: Config) -> str:
    """Convert config to TOML string representation."""
    lines = ["# LedgerChat Configuration", ""]

    lines.append("[program]")
    lines.append(f'program_id = "{config.program.program_id}"')
    lines.append("")

    lines.append("[chain]")
    lines.append(f"record_capacity = {config.chain.record_capacity}")
    lines.append(f"max_payload_bytes = {config.chain.max_payload_bytes}")
    lines.append(f"max_traversal_steps = {config.chain.max_traversal_steps}")
    lines.append(f"append_retries = {config.chain.append_retries}")
    lines.append("")

    lines.append("[ledger]")
    lines.append(f'path = "{config.ledger.path}"')
    lines.append(f"latency_ms = {config.ledger.latency_ms}")
    lines.append("")

    lines.append("[logging]")
    lines.append(f'level = "{config.logging.level}"')
    lines.append(f'file = "{config.logging.file}"')

    return "\n".join(lines)
