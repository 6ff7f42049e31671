"""Tests for parsing ``antumbra pgpt`` output."""

import pytest

from penumbra.core.errors import PartitionTableError
from penumbra.tool.partition_table import (
    Partition,
    parse_partition_line,
    parse_pgpt_output,
)


PGPT_OUTPUT = """
Antumbra ✦  Waiting for MTK device...
Antumbra ✦  Found MTK port: USB 0E8D:2000
Antumbra ✦  Partition Table:
Antumbra ✦  Name: preloader              Addr: 0x00000000        Size: 0x00400000 (4 MiB)
Antumbra ✦  Name: boot_para              Addr: 0x00008000        Size: 0x01A00000 (26 MiB)
Antumbra ✦  Name: boot_a                 Addr: 0x25100000        Size: 0x02000000 (32 MiB)
Antumbra ✦  Name: super                  Addr: 0x43800000        Size: 0x1FA120000 (7.9 GiB)
Antumbra ✦  Name: userdata               Addr: 0x250800000       Size: 0x39447FB000 (229.1 GiB)
"""


class TestParsePgptOutput:
    def test_device_listing(self):
        partitions = parse_pgpt_output(PGPT_OUTPUT)

        assert [p.name for p in partitions] == [
            "preloader",
            "boot_para",
            "boot_a",
            "super",
            "userdata",
        ]
        assert partitions[0] == Partition(
            name="preloader",
            start="0x00000000",
            size="0x00400000",
            display_size="4 MiB",
        )
        assert partitions[3].size == "0x1FA120000"
        assert partitions[3].display_size == "7.9 GiB"

    def test_no_partitions(self):
        with pytest.raises(PartitionTableError, match="No partitions found in output"):
            parse_pgpt_output("Antumbra ✦  Waiting for MTK device...\n")

    def test_empty_output(self):
        with pytest.raises(PartitionTableError):
            parse_pgpt_output("")


class TestParsePartitionLine:
    def test_without_human_size(self):
        partition = parse_partition_line("Name: nvram Addr: 0x1000 Size: 0x80000")

        assert partition is not None
        assert partition.display_size is None
        assert partition.size_hint == "512.00 KB"

    def test_single_word_human_size(self):
        partition = parse_partition_line("Name: lk Addr: 0x0 Size: 0x100000 (1MiB)")

        assert partition is not None
        assert partition.display_size == "1MiB"
        assert partition.size_hint == "1MiB"

    @pytest.mark.parametrize(
        "line",
        [
            "Partition Table:",
            "Name: Addr: 0x0 Size: 0x10",
            "Name: boot Addr:",
            "Name: boot Size: 0x10",
        ],
    )
    def test_incomplete_lines_skipped(self, line):
        assert parse_partition_line(line) is None
