"""Theme system for consistent Rich styling of CLI output."""

from rich.console import Console
from rich.theme import Theme


class Colors:
    """Standardized color palette for CLI output."""

    SUCCESS = "bold green"
    ERROR = "bold red"
    WARNING = "bold yellow"
    INFO = "bold blue"

    PRIMARY = "cyan"
    MUTED = "dim"
    HEADER = "bold cyan"


class Icons:
    """Standardized icons for different message types."""

    SUCCESS = "✅"
    ERROR = "❌"
    WARNING = "⚠️"
    INFO = "ℹ️"

    CHECKMARK = "✓"
    CROSS = "✗"
    BULLET = "•"

    DEVICE = "🔌"
    FLASH = "⚡"
    SAVE = "💾"

    _TEXT_FALLBACKS = {
        "SUCCESS": "",
        "ERROR": "",
        "WARNING": "!",
        "INFO": "i",
        "CHECKMARK": "✓",
        "CROSS": "✗",
        "BULLET": "•",
        "DEVICE": "",
        "FLASH": "",
        "SAVE": "",
    }

    @classmethod
    def get_icon(cls, icon_name: str, icon_mode: str = "emoji") -> str:
        """Get icon based on the specified mode ("emoji" or "text")."""
        if icon_mode == "emoji":
            return getattr(cls, icon_name, "")
        return cls._TEXT_FALLBACKS.get(icon_name, f"[{icon_name}]")

    @classmethod
    def format_with_icon(
        cls, icon_name: str, text: str, icon_mode: str = "emoji"
    ) -> str:
        """Format text with icon, handling empty icons gracefully."""
        icon = cls.get_icon(icon_name, icon_mode)
        if icon:
            return f"{icon} {text}"
        return text


PENUMBRA_THEME = Theme(
    {
        "success": Colors.SUCCESS,
        "error": Colors.ERROR,
        "warning": Colors.WARNING,
        "info": Colors.INFO,
        "primary": Colors.PRIMARY,
        "muted": Colors.MUTED,
        "header": Colors.HEADER,
    }
)

# Log levels share names with the theme styles above
LEVEL_ICONS = {
    "success": "SUCCESS",
    "error": "ERROR",
    "warning": "WARNING",
    "info": "INFO",
}


def create_console(**kwargs: object) -> Console:
    """Create a Rich console with the Penumbra theme applied."""
    return Console(theme=PENUMBRA_THEME, **kwargs)  # type: ignore[arg-type]
