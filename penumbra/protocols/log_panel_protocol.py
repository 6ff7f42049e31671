"""Protocol for the operation log display."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LogPanelProtocol(Protocol):
    """A passive view of the operation log that can be brought forward."""

    def open(self) -> None:
        """Make the log panel visible."""
        ...
