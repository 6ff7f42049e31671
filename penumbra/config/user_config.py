"""
User configuration loading for Penumbra.

Sources, in order of precedence:
1. Environment variables (PENUMBRA_*)
2. Command-line provided config file
3. penumbra.yaml in the current directory
4. The user's XDG config directory
5. Default values
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from penumbra.config.models import PenumbraSettings
from penumbra.core.errors import ConfigError
from penumbra.core.structlog_logger import get_struct_logger


logger = get_struct_logger(__name__)

ENV_PREFIX = "PENUMBRA_"


def generate_config_paths(cli_config_path: str | Path | None = None) -> list[Path]:
    """Config paths to search, highest precedence first."""
    config_paths: list[Path] = []

    if cli_config_path:
        config_paths.append(Path(cli_config_path).expanduser().resolve())

    config_paths.append(Path.cwd() / "penumbra.yaml")

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    config_root = Path(xdg_config_home) if xdg_config_home else Path.home() / ".config"
    config_paths.append(config_root / "penumbra" / "config.yaml")

    return config_paths


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_user_config(
    cli_config_path: str | Path | None = None,
) -> tuple[PenumbraSettings, Path | None]:
    """Load settings from the first config file found, then environment.

    A CLI path that does not exist is an error; the other locations are
    optional.

    Returns:
        Tuple of (settings, path of the file used or None)

    Raises:
        ConfigError: If a file is unreadable or the values do not validate
    """
    config_paths = generate_config_paths(cli_config_path)

    if cli_config_path and not config_paths[0].is_file():
        raise ConfigError(f"Config file not found: {config_paths[0]}")

    if logging.getLogger().isEnabledFor(logging.DEBUG):
        env_vars = sorted(k for k in os.environ if k.startswith(ENV_PREFIX))
        logger.debug(
            "config_search",
            paths=[str(p) for p in config_paths],
            env_vars=env_vars,
        )

    config_data: dict[str, Any] = {}
    found_path: Path | None = None
    for path in config_paths:
        if path.is_file():
            config_data = _read_yaml(path)
            found_path = path
            break

    try:
        settings = PenumbraSettings(**config_data)
    except PydanticValidationError as e:
        source = found_path or "environment"
        raise ConfigError(f"Invalid configuration from {source}: {e}") from e

    if found_path is not None:
        logger.debug("config_loaded", path=str(found_path))
    else:
        logger.debug("config_defaults_used")

    return settings, found_path


__all__ = ["generate_config_paths", "load_user_config"]
