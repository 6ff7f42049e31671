"""Core exception types for Penumbra.

Domain failures carry the same structured fields the antumbra wrapper reports
to the UI layer (type, category, suggestion, code, output), so the error
classifier can decode them without sniffing the message text.
"""

from typing import Any


class PenumbraError(Exception):
    """Base exception for all Penumbra errors."""

    error_type: str = "other"
    category: str | None = None

    def __init__(
        self,
        message: str = "",
        *,
        suggestion: str | None = None,
        code: int | None = None,
        output: str | None = None,
        category: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.code = code
        self.output = output
        if category is not None:
            self.category = category

    def to_payload(self) -> dict[str, Any]:
        """Return the serialized error shape used across the event boundary."""
        payload: dict[str, Any] = {"type": self.error_type, "message": self.message}
        if self.category is not None:
            payload["category"] = self.category
        if self.suggestion is not None:
            payload["suggestion"] = self.suggestion
        if self.code is not None:
            payload["code"] = self.code
        if self.output is not None:
            payload["output"] = self.output
        return payload


class ToolError(PenumbraError):
    """The antumbra binary failed, timed out, or could not be started."""

    error_type = "command"
    category = "command"


class ToolNotFoundError(ToolError):
    """The antumbra binary could not be located."""

    category = "filesystem"


class DeviceNotConnectedError(PenumbraError):
    """An operation needs a connected device and none is attached."""

    error_type = "device_not_connected"


class OperationCancelledError(PenumbraError):
    """The running operation was cancelled."""

    error_type = "cancelled"


class PartitionTableError(PenumbraError):
    """The partition table listing could not be parsed."""

    error_type = "parse"


class InvalidPartitionError(PenumbraError):
    """The requested partition does not exist on the device."""

    error_type = "invalid_partition"
    category = "validation"


class ValidationError(PenumbraError):
    """An input path or argument failed validation before launch."""

    error_type = "io"
    category = "validation"


class ConfigError(PenumbraError):
    """Configuration could not be loaded or is invalid."""

    error_type = "config"
    category = "validation"


__all__ = [
    "PenumbraError",
    "ToolError",
    "ToolNotFoundError",
    "DeviceNotConnectedError",
    "OperationCancelledError",
    "InvalidPartitionError",
    "PartitionTableError",
    "ValidationError",
    "ConfigError",
]
