"""Formatting helpers for sizes and timestamped file names."""

from datetime import datetime, timezone


KIB = 1024
MIB = KIB * 1024
GIB = MIB * 1024


def format_bytes(size: int) -> str:
    """Format a byte count as a human-readable string.

    Examples:
        format_bytes(512) -> "512 B"
        format_bytes(1536000) -> "1.46 MB"
    """
    if size < KIB:
        return f"{size} B"
    if size < MIB:
        return f"{size / KIB:.2f} KB"
    if size < GIB:
        return f"{size / MIB:.2f} MB"
    return f"{size / GIB:.2f} GB"


def format_hex_size(hex_size: str) -> str:
    """Format a hexadecimal size such as ``"0x400000"`` as bytes.

    Returns the input unchanged when it is not valid hex.
    """
    try:
        size = int(hex_size.strip(), 16)
    except ValueError:
        return hex_size
    return format_bytes(size)


def timestamp_string(now: datetime | None = None) -> str:
    """UTC timestamp safe for file names, e.g. ``2026-02-08T12-30-45``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")


def timestamped_filename(name: str, ext: str, now: datetime | None = None) -> str:
    """Build ``<name>_<timestamp>.<ext>``."""
    return f"{name}_{timestamp_string(now)}.{ext.lstrip('.')}"
