"""Tests for formatting helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from penumbra.utils import (
    format_bytes,
    format_hex_size,
    timestamp_string,
    timestamped_filename,
)


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.00 KB"),
        (1536000, "1.46 MB"),
        (1024**3, "1.00 GB"),
        (5 * 1024**3 + 512 * 1024**2, "5.50 GB"),
    ],
)
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected


def test_format_hex_size():
    assert format_hex_size("0x400000") == "4.00 MB"
    assert format_hex_size(" 0x200 ") == "512 B"


def test_format_hex_size_returns_invalid_input():
    assert format_hex_size("unknown") == "unknown"


def test_timestamp_string_is_utc():
    local = datetime(2026, 2, 8, 14, 30, 45, tzinfo=timezone(timedelta(hours=2)))

    assert timestamp_string(local) == "2026-02-08T12-30-45"


def test_timestamped_filename():
    now = datetime(2026, 2, 8, 12, 30, 45, tzinfo=timezone.utc)

    assert timestamped_filename("boot", "bin", now) == "boot_2026-02-08T12-30-45.bin"
    assert timestamped_filename("boot", ".img", now) == "boot_2026-02-08T12-30-45.img"
