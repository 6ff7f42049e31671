"""Consistent surfacing of errors and results.

Every report goes to up to three sinks: an ephemeral notification, the
structured console log, and the operation log held by the registry.
"""

import logging
from typing import TYPE_CHECKING, Any

from penumbra.core.structlog_logger import get_struct_logger
from penumbra.errors.classifier import (
    StructuredError,
    classify_error,
    get_error_suggestion,
)
from penumbra.errors.troubleshooting import get_troubleshooting_steps
from penumbra.models.base import PenumbraBaseModel
from penumbra.operations.models import LogEntry, LogLevel


if TYPE_CHECKING:
    from penumbra.operations.registry import OperationRegistry
    from penumbra.protocols import NotifierProtocol


logger = get_struct_logger(__name__)

ERROR_TOAST_MS = 4000
ERROR_WITH_SUGGESTION_TOAST_MS = 6000
DEFAULT_TOAST_MS = 4000


class ErrorOptions(PenumbraBaseModel):
    """Options for error handling behavior."""

    show_toast: bool = True
    log_to_console: bool = True
    add_to_operation_log: bool = True
    custom_message: str | None = None
    show_suggestion: bool = True
    include_troubleshooting: bool = False


class ErrorHandler:
    """Error and success reporting shared by every call site."""

    def __init__(
        self,
        registry: "OperationRegistry",
        notifier: "NotifierProtocol | None" = None,
    ) -> None:
        self.registry = registry
        self.notifier = notifier

    def handle(
        self,
        error: Any,
        label: str,
        options: ErrorOptions | None = None,
    ) -> StructuredError:
        """Classify ``error`` and report it under ``label``.

        Args:
            error: Any failure value (exception, payload, string, ...)
            label: Name of the failed operation, e.g. "Read partition"
            options: Which sinks to use and message overrides

        Returns:
            The StructuredError so callers can branch on kind or category
        """
        options = options or ErrorOptions()
        parsed = classify_error(error)

        error_message = options.custom_message or parsed.message
        suggestion = get_error_suggestion(parsed) if options.show_suggestion else None
        display_message = (
            f"{error_message}\n\n💡 {suggestion}" if suggestion else error_message
        )

        if options.log_to_console:
            exc_info = (
                error
                if isinstance(error, BaseException)
                and logging.getLogger().isEnabledFor(logging.DEBUG)
                else None
            )
            logger.error(
                "operation_error",
                operation=label,
                error=parsed.message,
                error_kind=parsed.kind,
                category=parsed.category.value,
                code=parsed.code,
                exc_info=exc_info,
            )

        if options.show_toast and self.notifier is not None:
            self.notifier.notify(
                "error",
                display_message,
                duration_ms=(
                    ERROR_WITH_SUGGESTION_TOAST_MS if suggestion else ERROR_TOAST_MS
                ),
            )

        if options.add_to_operation_log:
            self._log(LogLevel.ERROR, f"[{label}] {error_message}")
            if suggestion:
                self._log(LogLevel.INFO, f"💡 Suggestion: {suggestion}")
            if options.include_troubleshooting:
                steps = get_troubleshooting_steps(parsed)
                for index, step in enumerate(steps, start=1):
                    self._log(LogLevel.INFO, f"  {index}. {step}")

        return parsed

    def success(
        self, label: str, message: str | None = None, show_toast: bool = True
    ) -> None:
        """Report a successful operation."""
        success_message = message or f"{label} completed successfully"
        logger.info("operation_succeeded", operation=label, message=success_message)
        if show_toast and self.notifier is not None:
            self.notifier.notify("success", success_message, DEFAULT_TOAST_MS)
        self._log(LogLevel.SUCCESS, success_message)

    def info(self, label: str, message: str, show_toast: bool = False) -> None:
        """Report an informational message (not shown as a toast by default)."""
        logger.info("operation_info", operation=label, message=message)
        if show_toast and self.notifier is not None:
            self.notifier.notify("info", message, DEFAULT_TOAST_MS)
        self._log(LogLevel.INFO, f"[{label}] {message}")

    def warn(self, label: str, message: str, show_toast: bool = True) -> None:
        """Report a warning."""
        logger.warning("operation_warning", operation=label, message=message)
        if show_toast and self.notifier is not None:
            self.notifier.notify("warning", message, DEFAULT_TOAST_MS)
        self._log(LogLevel.WARNING, f"[{label}] {message}")

    def _log(self, level: LogLevel, message: str) -> None:
        self.registry.add_log(LogEntry(level=level, message=message))
