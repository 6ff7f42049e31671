"""Console-backed ephemeral notifications."""

from rich.console import Console

from penumbra.cli.theme import LEVEL_ICONS, Icons, create_console


class ConsoleNotifier:
    """Prints notifications as styled one-off console lines.

    A terminal has no toast area, so the display duration is ignored; it is
    accepted to satisfy NotifierProtocol.
    """

    def __init__(self, console: Console | None = None, icon_mode: str = "emoji"):
        self.console = console or create_console(stderr=True)
        self.icon_mode = icon_mode

    def notify(self, level: str, message: str, duration_ms: int = 4000) -> None:
        icon_name = LEVEL_ICONS.get(level, "INFO")
        self.console.print(
            Icons.format_with_icon(icon_name, message, self.icon_mode),
            style=level if level in LEVEL_ICONS else "info",
            highlight=False,
        )
