"""Error classification and surfacing."""

from .classifier import (
    CATEGORY_SUGGESTIONS,
    ErrorCategory,
    StructuredError,
    categorize_message,
    classify_error,
    get_error_suggestion,
)
from .handler import ErrorHandler, ErrorOptions
from .troubleshooting import get_troubleshooting_steps


__all__ = [
    "CATEGORY_SUGGESTIONS",
    "ErrorCategory",
    "StructuredError",
    "categorize_message",
    "classify_error",
    "get_error_suggestion",
    "get_troubleshooting_steps",
    "ErrorHandler",
    "ErrorOptions",
]
