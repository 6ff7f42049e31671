"""Utility helpers for Penumbra."""

from .format import format_bytes, format_hex_size, timestamp_string, timestamped_filename


__all__ = [
    "format_bytes",
    "format_hex_size",
    "timestamp_string",
    "timestamped_filename",
]
