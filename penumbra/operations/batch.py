"""Batch runner: one tracked operation per partition, continuing past failures.

The abort signal is checked before each unit starts. A unit already in
flight is never interrupted by the runner itself; device disconnection
cancels the tool separately.
"""

from collections.abc import Callable
from enum import Enum

from pydantic import Field

from penumbra.core.structlog_logger import get_struct_logger
from penumbra.errors.handler import ErrorHandler, ErrorOptions
from penumbra.models.base import PenumbraBaseModel
from penumbra.operations.launcher import ExecuteRequest, OperationLauncher, RunCallable
from penumbra.operations.models import OperationKind
from penumbra.protocols import NotifierProtocol


logger = get_struct_logger(__name__)


# Calibration data that cannot be regenerated once lost
CRITICAL_PARTITIONS = ("nvram", "nvdata", "nvcfg", "proinfo", "protect1", "protect2")


class AbortReason(str, Enum):
    USER = "user"
    DISCONNECT = "disconnect"


ABORT_MESSAGES = {
    AbortReason.USER: "Backup cancelled by user",
    AbortReason.DISCONNECT: (
        "Backup stopped after current partition because the device disconnected"
    ),
}


class AbortSignal:
    """Cooperative cancellation flag for a batch."""

    def __init__(self) -> None:
        self.aborted = False
        self.reason: AbortReason | None = None

    def abort(self, reason: AbortReason = AbortReason.USER) -> None:
        if not self.aborted:
            self.aborted = True
            self.reason = reason


class BatchItem(PenumbraBaseModel):
    """One partition to process."""

    name: str
    size_hint: str | None = None


class BatchSummary(PenumbraBaseModel):
    """Outcome of a batch run."""

    total: int
    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    aborted: bool = False
    abort_reason: AbortReason | None = None

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def message(self) -> str:
        if self.failure_count == 0:
            return f"Backup complete! {self.success_count} partitions backed up"
        return (
            f"Backup complete: {self.success_count} succeeded, "
            f"{self.failure_count} failed"
        )


async def run_batch(
    launcher: OperationLauncher,
    error_handler: ErrorHandler,
    items: list[BatchItem],
    make_run: Callable[[BatchItem], RunCallable],
    abort: AbortSignal | None = None,
    notifier: NotifierProtocol | None = None,
    kind: OperationKind = OperationKind.READ,
    label: str = "Backup",
) -> BatchSummary:
    """Run ``make_run(item)`` for each item as its own operation.

    Args:
        launcher: Launcher used for every unit
        error_handler: Reports batch-level start, abort and summary lines
        items: Partitions to process, in order
        make_run: Builds the run coroutine for one item
        abort: Checked before each unit starts
        notifier: Per-item and summary notifications
        kind: Operation kind of each unit
        label: Prefix for per-unit operation labels

    Returns:
        BatchSummary with per-item results
    """
    abort = abort or AbortSignal()
    summary = BatchSummary(total=len(items))

    launcher.prepare()
    error_handler.info(
        label, f"Starting {label.lower()} for {len(items)} partitions..."
    )

    for index, item in enumerate(items, start=1):
        if abort.aborted:
            reason = abort.reason or AbortReason.USER
            summary.aborted = True
            summary.abort_reason = reason
            error_handler.warn(label, ABORT_MESSAGES[reason])
            logger.info(
                "batch_aborted", reason=reason.value, remaining=len(items) - index + 1
            )
            break

        outcome = await launcher.execute(
            ExecuteRequest(
                label=f"{label} {item.name}",
                kind=kind,
                subject_name=item.name,
                subject_size_hint=item.size_hint,
                clear_logs=False,
                open_log_panel=False,
                handle_success=False,
                error_options=ErrorOptions(show_toast=False),
                run=make_run(item),
            )
        )

        if outcome.success:
            summary.succeeded.append(item.name)
            if notifier is not None:
                notifier.notify("success", f"✓ {item.name} ({index}/{len(items)})")
        else:
            summary.failed.append(item.name)
            if notifier is not None:
                notifier.notify("error", f"✗ {item.name} failed")

    logger.info(
        "batch_finished",
        succeeded=summary.success_count,
        failed=summary.failure_count,
        aborted=summary.aborted,
    )
    if notifier is not None:
        notifier.notify(
            "success" if summary.failure_count == 0 else "warning", summary.message
        )
    return summary
