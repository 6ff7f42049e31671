"""Models for tracked operations, their log sequence and progress."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import Field, field_validator

from penumbra.models.base import PenumbraBaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OperationKind(str, Enum):
    """Kind of work an operation performs."""

    READ = "read"
    WRITE = "write"
    FORMAT = "format"
    ERASE = "erase"
    COMPOSITE = "composite"


class LogLevel(str, Enum):
    """Severity of an operation log entry."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class LogEntry(PenumbraBaseModel):
    """One line in the operation log."""

    id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel = LogLevel.INFO
    message: str
    subject_name: str | None = None

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so entries always compare."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ProgressSnapshot(PenumbraBaseModel):
    """Latest progress report for the running operation."""

    current: int = 0
    total: int = 0
    percentage: float = 0.0
    subject_name: str | None = None
    kind: OperationKind | None = None


class Operation(PenumbraBaseModel):
    """The single tracked unit of work.

    ``kind`` is None until an operation has been started (or after reset).
    """

    kind: OperationKind | None = None
    subject_name: str | None = None
    subject_size_hint: str | None = None
    operation_id: str | None = None
    is_running: bool = False
    is_streaming: bool = False
    start_time: datetime | None = None
    end_time: datetime | None = None
    error: str | None = None

    @property
    def elapsed_seconds(self) -> float | None:
        """Seconds since start, frozen at the finish time once finished."""
        if self.start_time is None:
            return None
        end = self.end_time or utc_now()
        return (end - self.start_time).total_seconds()


class OperationOutputEvent(PenumbraBaseModel):
    """A single line of tool output tagged with its operation id."""

    operation_id: str
    line: str
    timestamp: datetime = Field(default_factory=utc_now)
    is_stderr: bool = False


class OperationCompleteEvent(PenumbraBaseModel):
    """Completion signal for a streamed operation."""

    operation_id: str
    success: bool
    error: str | None = None


class OperationOutcome(PenumbraBaseModel):
    """What the launcher returns for one launched operation."""

    operation_id: str
    success: bool


__all__ = [
    "OperationKind",
    "LogLevel",
    "LogEntry",
    "ProgressSnapshot",
    "Operation",
    "OperationOutputEvent",
    "OperationCompleteEvent",
    "OperationOutcome",
    "utc_now",
]
