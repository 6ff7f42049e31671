"""Base model for all Penumbra Pydantic models.

This module provides a base model class that enforces consistent serialization
behavior across all Penumbra models.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class PenumbraBaseModel(BaseModel):
    """Base model class for all Penumbra Pydantic models.

    String fields are stored verbatim: log lines and tool output keep their
    leading and trailing whitespace.
    """

    model_config = ConfigDict(
        use_enum_values=True,
        validate_assignment=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to a JSON-compatible dictionary using field aliases."""
        return self.model_dump(by_alias=True, mode="json")
