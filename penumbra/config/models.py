"""Settings model for Penumbra."""

import os
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_output_path() -> Path:
    return Path.home() / "penumbra-backups"


class PenumbraSettings(BaseSettings):
    """Application settings with automatic environment variable support.

    Precedence order (highest to lowest):
    1. Environment variables (PENUMBRA_*)
    2. Constructor arguments (file data)
    3. .env file
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="PENUMBRA_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Environment variables override file configuration."""
        return (
            env_settings,
            init_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Logging
    log_level: str = "WARNING"
    log_file: Path | None = None

    # Operation log
    max_log_entries: int = Field(
        default=10_000, ge=1, description="Maximum log entries kept in memory"
    )
    dedup_window_ms: int = Field(
        default=500,
        ge=0,
        description="Identical consecutive log lines closer than this are dropped",
    )

    # antumbra tool
    antumbra_path: Path | None = Field(
        default=None, description="Path to the antumbra binary (searched on PATH if unset)"
    )
    working_dir: Path | None = Field(
        default=None, description="Working directory for antumbra invocations"
    )
    inactivity_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds without tool output before the process is killed",
    )

    # Device
    da_path: Path | None = Field(default=None, description="Download Agent file")
    preloader_path: Path | None = Field(default=None, description="Preloader file")
    default_output_path: Path = Field(
        default_factory=_default_output_path,
        description="Directory for partition backups",
    )

    # UI
    icon_mode: str = Field(default="emoji", description="Icon mode: emoji or text")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper_v = v.strip().upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return upper_v

    @field_validator("icon_mode")
    @classmethod
    def validate_icon_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in ("emoji", "text"):
            raise ValueError("icon_mode must be 'emoji' or 'text'")
        return mode

    @field_validator(
        "log_file",
        "antumbra_path",
        "working_dir",
        "da_path",
        "preloader_path",
        "default_output_path",
        mode="before",
    )
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str) and v:
            return Path(os.path.expandvars(v)).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v or None
