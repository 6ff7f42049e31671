"""Operation registry: the single owner of operation, log and progress state.

Only the launcher, the event stream listener and the error handler call the
mutation methods. Display code reads snapshots and subscribes for changes.

At most one operation is expected to be running. Starting a new one while
``is_running`` is true replaces the previous operation; callers are
responsible for not doing that.
"""

import logging
import uuid
from collections import deque
from itertools import islice
from collections.abc import Callable
from datetime import datetime

from penumbra.core.structlog_logger import StructlogMixin
from penumbra.operations.models import (
    LogEntry,
    Operation,
    OperationKind,
    ProgressSnapshot,
    utc_now,
)


DEFAULT_MAX_LOGS = 10_000
DEFAULT_DEDUP_WINDOW_MS = 500

RegistryListener = Callable[["OperationRegistry"], None]


class OperationRegistry(StructlogMixin):
    """Application-scoped state handle for the current operation."""

    def __init__(
        self,
        max_logs: int = DEFAULT_MAX_LOGS,
        dedup_window_ms: int = DEFAULT_DEDUP_WINDOW_MS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__()
        if max_logs < 1:
            raise ValueError("max_logs must be at least 1")
        self.max_logs = max_logs
        self.dedup_window_ms = dedup_window_ms
        self._clock = clock
        self._operation = Operation()
        self._logs: deque[LogEntry] = deque(maxlen=max_logs)
        self._progress: ProgressSnapshot | None = None
        self._appended = 0
        self._listeners: list[RegistryListener] = []

    # -- read side -------------------------------------------------------

    @property
    def operation(self) -> Operation:
        """Copy of the current operation."""
        return self._operation.model_copy()

    @property
    def logs(self) -> list[LogEntry]:
        """Log entries in insertion order."""
        return list(self._logs)

    @property
    def log_count(self) -> int:
        return len(self._logs)

    @property
    def appended_count(self) -> int:
        """Entries appended since creation; never decreases, even on clear."""
        return self._appended

    def recent_logs(self, count: int) -> list[LogEntry]:
        """The newest ``count`` entries, oldest first."""
        if count <= 0:
            return []
        recent = list(islice(reversed(self._logs), count))
        recent.reverse()
        return recent

    @property
    def progress(self) -> ProgressSnapshot | None:
        return self._progress

    @property
    def is_running(self) -> bool:
        return self._operation.is_running

    @property
    def is_streaming(self) -> bool:
        return self._operation.is_streaming

    @property
    def operation_id(self) -> str | None:
        return self._operation.operation_id

    @property
    def error(self) -> str | None:
        return self._operation.error

    @property
    def elapsed_seconds(self) -> float | None:
        return self._operation.elapsed_seconds

    def subscribe(self, listener: RegistryListener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- mutations -------------------------------------------------------

    def start(
        self,
        kind: OperationKind | str,
        subject_name: str,
        subject_size_hint: str | None = None,
        operation_id: str | None = None,
    ) -> None:
        """Begin a new operation. Accumulated logs are kept."""
        if self._operation.is_running:
            self.logger.warning(
                "operation_replaced_while_running",
                previous_operation_id=self._operation.operation_id,
                operation_id=operation_id,
            )
        self._operation = Operation(
            kind=OperationKind(kind),
            subject_name=subject_name,
            subject_size_hint=subject_size_hint or None,
            operation_id=operation_id or None,
            is_running=True,
            is_streaming=bool(operation_id),
            start_time=self._clock(),
        )
        self._progress = None
        self.logger.debug(
            "operation_started",
            kind=self._operation.kind,
            subject_name=subject_name,
            operation_id=operation_id,
        )
        self._notify()

    def set_operation_id(self, operation_id: str) -> None:
        """Attach a late-bound correlation id; the operation is now streaming."""
        self._operation.operation_id = operation_id
        self._operation.is_streaming = True
        self._notify()

    def set_streaming(self, is_streaming: bool) -> None:
        self._operation.is_streaming = is_streaming
        self._notify()

    def update_progress(self, progress: ProgressSnapshot) -> None:
        """Replace the progress snapshot wholesale."""
        self._progress = progress
        self._notify()

    def add_log(self, entry: LogEntry) -> bool:
        """Append a log entry unless it duplicates the previous one.

        An entry whose message equals the last entry's message and whose
        timestamp is within the dedup window of it is dropped. The oldest
        entries are evicted once ``max_logs`` is exceeded.

        Returns:
            True if the entry was appended
        """
        if self._logs:
            last = self._logs[-1]
            if last.message == entry.message:
                delta_ms = abs(
                    (entry.timestamp - last.timestamp).total_seconds() * 1000
                )
                if delta_ms < self.dedup_window_ms:
                    return False

        if not entry.id:
            entry = entry.model_copy(update={"id": str(uuid.uuid4())})
        self._logs.append(entry)
        self._appended += 1
        self._notify()
        return True

    def clear_logs(self) -> None:
        self._logs.clear()
        self._notify()

    def finish(self, success: bool, error: str | None = None) -> None:
        """Mark the operation finished. Logs and subject are left untouched."""
        self._operation.is_running = False
        self._operation.is_streaming = False
        self._operation.error = error or None
        if self._operation.start_time is not None:
            self._operation.end_time = self._clock()
        self.logger.debug(
            "operation_finished",
            operation_id=self._operation.operation_id,
            success=success,
            error=error,
        )
        self._notify()

    def reset(self) -> None:
        """Clear the operation, logs, progress and error entirely."""
        self._operation = Operation()
        self._logs.clear()
        self._progress = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                exc_info = logging.getLogger().isEnabledFor(logging.DEBUG)
                self.logger.warning(
                    "registry_listener_failed", error=str(e), exc_info=exc_info
                )
