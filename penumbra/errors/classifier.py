"""Error classification: fold any failure value into a StructuredError.

Failures reach the UI layer in several shapes: Python exceptions, structured
payloads from the tool wrapper (``{"type": ..., "message": ...}``), plain
strings, or arbitrary objects. ``classify_error`` decodes them through an
ordered list of arms; the first arm whose predicate matches wins, and the
last arm accepts anything.
"""

import json
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from penumbra.core.errors import PenumbraError
from penumbra.models.base import PenumbraBaseModel


class ErrorCategory(str, Enum):
    """Categories of errors for classification and user guidance."""

    NETWORK = "network"
    PERMISSION = "permission"
    FILESYSTEM = "filesystem"
    VALIDATION = "validation"
    COMMAND = "command"
    UPDATE = "update"
    UNKNOWN = "unknown"


class StructuredError(PenumbraBaseModel):
    """Normalized failure."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    kind: str = Field(alias="type")
    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN
    suggestion: str | None = None
    code: int | None = None
    output: str | None = None


UNKNOWN_MESSAGE = "An unknown error occurred"
GENERIC_MESSAGE = "An error occurred"
UNAVAILABLE_MESSAGE = "An error occurred (details unavailable)"

# Checked in order, first match wins
CATEGORY_KEYWORDS: list[tuple[ErrorCategory, tuple[str, ...]]] = [
    (
        ErrorCategory.NETWORK,
        ("network", "connection", "timeout", "dns", "github", "download", "fetch"),
    ),
    (
        ErrorCategory.PERMISSION,
        (
            "permission",
            "access denied",
            "error code 5",
            "error code 32",
            "sharing violation",
            "administrator",
        ),
    ),
    (
        ErrorCategory.FILESYSTEM,
        ("file", "directory", "path", "not found", "disk full", "no space"),
    ),
    (ErrorCategory.COMMAND, ("command", "execution", "antumbra")),
    (ErrorCategory.UPDATE, ("update", "checksum", "hash", "verification")),
]

CATEGORY_SUGGESTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK: "Check your internet connection and try again",
    ErrorCategory.PERMISSION: "Run as Administrator or check folder permissions",
    ErrorCategory.FILESYSTEM: (
        "Check that files and directories exist and are accessible"
    ),
    ErrorCategory.COMMAND: "Ensure required binaries are installed and accessible",
    ErrorCategory.UPDATE: "Try updating again or check for available updates",
}


def categorize_message(message: str) -> ErrorCategory:
    """Categorize an error by keywords in its message."""
    lower_message = message.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lower_message for keyword in keywords):
            return category
    return ErrorCategory.UNKNOWN


def parse_category(value: Any) -> ErrorCategory:
    """Map a category name onto the fixed set, case-insensitively."""
    if not isinstance(value, str) or not value:
        return ErrorCategory.UNKNOWN
    try:
        return ErrorCategory(value.strip().lower())
    except ValueError:
        return ErrorCategory.UNKNOWN


def _as_mapping(error: Any) -> Mapping[str, Any] | None:
    if isinstance(error, PenumbraError):
        return error.to_payload()
    if isinstance(error, BaseModel):
        return error.model_dump(by_alias=True)
    if isinstance(error, Mapping):
        return error
    return None


def _from_structured(payload: Mapping[str, Any]) -> StructuredError:
    message = payload.get("message")
    code = payload.get("code")
    output = payload.get("output")
    suggestion = payload.get("suggestion")
    return StructuredError(
        kind=payload["type"],
        message=message if isinstance(message, str) and message else GENERIC_MESSAGE,
        category=parse_category(payload.get("category")),
        suggestion=suggestion if isinstance(suggestion, str) else None,
        code=code if isinstance(code, int) and not isinstance(code, bool) else None,
        output=output if isinstance(output, str) else None,
    )


def _is_structured(error: Any) -> bool:
    payload = _as_mapping(error)
    return payload is not None and isinstance(payload.get("type"), str)


def _is_message_only(error: Any) -> bool:
    payload = _as_mapping(error)
    return payload is not None and isinstance(payload.get("message"), str)


def _stringify(error: Any) -> StructuredError:
    try:
        message = json.dumps(error)
    except (TypeError, ValueError):
        message = UNAVAILABLE_MESSAGE
    return StructuredError(kind="other", message=message)


_PRIMITIVES = (bool, int, float, complex, bytes)


class DecodeArm(NamedTuple):
    name: str
    matches: Callable[[Any], bool]
    decode: Callable[[Any], StructuredError]


DECODE_ARMS: list[DecodeArm] = [
    DecodeArm(
        "missing",
        lambda e: e is None,
        lambda e: StructuredError(kind="unknown", message=UNKNOWN_MESSAGE),
    ),
    DecodeArm(
        "domain_error",
        lambda e: isinstance(e, PenumbraError),
        lambda e: _from_structured(e.to_payload()),
    ),
    DecodeArm(
        "exception",
        lambda e: isinstance(e, BaseException),
        lambda e: StructuredError(kind="other", message=str(e) or GENERIC_MESSAGE),
    ),
    DecodeArm(
        "string",
        lambda e: isinstance(e, str),
        lambda e: StructuredError(
            kind="other", message=e, category=categorize_message(e)
        ),
    ),
    DecodeArm(
        "structured",
        _is_structured,
        lambda e: _from_structured(_as_mapping(e)),  # type: ignore[arg-type]
    ),
    DecodeArm(
        "message",
        _is_message_only,
        lambda e: StructuredError(
            kind="other",
            message=_as_mapping(e)["message"],  # type: ignore[index]
            category=categorize_message(_as_mapping(e)["message"]),  # type: ignore[index]
        ),
    ),
    DecodeArm("object", lambda e: not isinstance(e, _PRIMITIVES), _stringify),
]


def _decode_fallback(error: Any) -> StructuredError:
    return StructuredError(kind="unknown", message=str(error))


def classify_error(error: Any) -> StructuredError:
    """Normalize any failure value into a StructuredError.

    The first matching arm of DECODE_ARMS wins; values no arm accepts
    (numbers, bytes) are string-coerced with an unknown category.
    """
    for arm in DECODE_ARMS:
        if arm.matches(error):
            return arm.decode(error)
    return _decode_fallback(error)


def get_error_suggestion(error: Any) -> str | None:
    """Explicit suggestion if the error carries one, else one per category."""
    parsed = error if isinstance(error, StructuredError) else classify_error(error)
    if parsed.suggestion:
        return parsed.suggestion
    return CATEGORY_SUGGESTIONS.get(parsed.category)
