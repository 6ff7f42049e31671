"""Console log panel: prints operation log entries as they arrive."""

from collections.abc import Callable

from rich.console import Console
from rich.text import Text

from penumbra.cli.theme import create_console
from penumbra.operations.models import LogEntry, LogLevel
from penumbra.operations.registry import OperationRegistry


class ConsoleLogPanel:
    """Passive consumer of the registry log.

    Nothing is printed until ``open()`` is called. The first ``open()`` prints
    the entries already in the log; from then on every new entry is printed
    once, styled by level. Progress is tracked with the registry's append
    counter, so each change only visits the entries appended since the last
    one.
    """

    def __init__(
        self, registry: OperationRegistry, console: Console | None = None
    ) -> None:
        self.registry = registry
        self.console = console or create_console()
        self._printed_through: int | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    def open(self) -> None:
        if self._printed_through is None:
            self._printed_through = (
                self.registry.appended_count - self.registry.log_count
            )
        if self._unsubscribe is None:
            self._unsubscribe = self.registry.subscribe(self._on_change)
        self._on_change(self.registry)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, registry: OperationRegistry) -> None:
        appended = registry.appended_count
        if self._printed_through is None or appended == self._printed_through:
            return
        # Entries evicted or cleared before we saw them are skipped
        pending = min(appended - self._printed_through, registry.log_count)
        self._printed_through = appended
        for entry in registry.recent_logs(pending):
            self.console.print(format_entry(entry))


def format_entry(entry: LogEntry) -> Text:
    """Render ``HH:MM:SS message`` with the level's theme style."""
    line = Text(entry.timestamp.astimezone().strftime("%H:%M:%S"), style="muted")
    line.append(" ")
    line.append(entry.message, style=LogLevel(entry.level).value)
    return line
