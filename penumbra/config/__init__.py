"""Configuration for Penumbra."""

from .models import PenumbraSettings
from .user_config import generate_config_paths, load_user_config


__all__ = ["PenumbraSettings", "generate_config_paths", "load_user_config"]
