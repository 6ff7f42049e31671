"""Parser for the partition table printed by ``antumbra pgpt``.

Each partition appears on one line of the form::

    Antumbra ✦  Name: preloader   Addr: 0x00000000   Size: 0x00400000 (4 MiB)

Lines without a ``Name:`` field (banners, port discovery) are ignored.
"""

from penumbra.core.errors import PartitionTableError
from penumbra.models.base import PenumbraBaseModel
from penumbra.utils.format import format_hex_size


class Partition(PenumbraBaseModel):
    """One entry of the device partition table."""

    name: str
    start: str
    size: str
    display_size: str | None = None

    @property
    def size_hint(self) -> str:
        """Human-readable size, preferring the one antumbra printed."""
        return self.display_size or format_hex_size(self.size)


FIELD_LABELS = ("Name:", "Addr:", "Size:")


def _token_after(parts: list[str], label: str) -> str:
    index = parts.index(label)
    if index + 1 >= len(parts) or parts[index + 1] in FIELD_LABELS:
        return ""
    return parts[index + 1]


def _parenthesized(parts: list[str]) -> str | None:
    words: list[str] = []
    for part in parts:
        if part.startswith("("):
            words.append(part[1:])
        elif words:
            words.append(part)
        else:
            continue
        if words[-1].endswith(")"):
            words[-1] = words[-1][:-1]
            break
    text = " ".join(word for word in words if word)
    return text or None


def parse_partition_line(line: str) -> Partition | None:
    """Parse one ``Name:/Addr:/Size:`` line, or return None if it has none."""
    parts = line.split()
    if not set(FIELD_LABELS).issubset(parts):
        return None

    name = _token_after(parts, "Name:")
    start = _token_after(parts, "Addr:")
    if not name or not start:
        return None

    size_index = parts.index("Size:")
    return Partition(
        name=name,
        start=start,
        size=_token_after(parts, "Size:"),
        display_size=_parenthesized(parts[size_index + 2 :]),
    )


def parse_pgpt_output(output: str) -> list[Partition]:
    """Collect every partition listed in ``antumbra pgpt`` output.

    Raises:
        PartitionTableError: If no partition lines are present
    """
    partitions = []
    for line in output.splitlines():
        if "Name:" not in line:
            continue
        partition = parse_partition_line(line)
        if partition is not None:
            partitions.append(partition)

    if not partitions:
        raise PartitionTableError(
            "No partitions found in output",
            suggestion="Check that the device is in download mode and reconnect",
        )
    return partitions


class PartitionList(PenumbraBaseModel):
    """Parsed partition table plus the id of the run that produced it."""

    partitions: list[Partition]
    operation_id: str
