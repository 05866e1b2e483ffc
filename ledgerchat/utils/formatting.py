"""
LedgerChat Formatting Utilities

Helper functions for formatting CLI output.
"""


def format_address(address, short: bool = False) -> str:
    """
    Format an address for display.

    Args:
        address: Address instance
        short: Keep only the first and last four characters

    Returns:
        base58 string, or "(none)" for the sentinel
    """
    if address.is_sentinel:
        return "(none)"
    text = str(address)
    if short and len(text) > 11:
        return f"{text[:4]}...{text[-4:]}"
    return text


def format_size(size_bytes: int) -> str:
    """
    Format byte size to human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string like "1.5 KB"
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    else:
        return f"{size_bytes / (1024 * 1024):.1f} MB"


def truncate(text: str, max_length: int = 50, suffix: str = "...") -> str:
    """Truncate text to max_length including suffix."""
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix
