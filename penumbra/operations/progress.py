"""Progress extraction from tool output lines."""

import re

from penumbra.operations.models import OperationKind, ProgressSnapshot


PERCENT_PATTERN = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%")
COUNTER_PATTERN = re.compile(r"\b(\d+)\s*/\s*(\d+)\b")


def parse_progress_line(
    line: str,
    subject_name: str | None = None,
    kind: OperationKind | str | None = None,
) -> ProgressSnapshot | None:
    """Build a progress snapshot from a line such as ``"Reading 12/64 (18%)"``.

    A ``current/total`` counter gives the units; a percentage, if present,
    is taken as-is, otherwise it is derived from the counter. Returns None
    when the line carries no usable progress.
    """
    percent_match = PERCENT_PATTERN.search(line)
    counter_match = COUNTER_PATTERN.search(line)

    percentage: float | None = None
    if percent_match:
        value = float(percent_match.group(1))
        if 0.0 <= value <= 100.0:
            percentage = value

    current = total = None
    if counter_match:
        first, second = int(counter_match.group(1)), int(counter_match.group(2))
        if 0 < second and first <= second:
            current, total = first, second

    if current is None and percentage is None:
        return None

    if current is None or total is None:
        current, total = int(percentage or 0), 100
    elif percentage is None:
        percentage = round(current / total * 100, 1)

    return ProgressSnapshot(
        current=current,
        total=total,
        percentage=percentage,
        subject_name=subject_name,
        kind=OperationKind(kind) if kind else None,
    )
