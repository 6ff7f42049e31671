from .errors import (
    ConfigError,
    DeviceNotConnectedError,
    InvalidPartitionError,
    OperationCancelledError,
    PartitionTableError,
    PenumbraError,
    ToolError,
    ToolNotFoundError,
    ValidationError,
)
from .logging import setup_logging


__all__ = [
    "setup_logging",
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
