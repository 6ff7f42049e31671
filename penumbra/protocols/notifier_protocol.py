"""Protocol for ephemeral user notifications (toasts)."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class NotifierProtocol(Protocol):
    """Shows short-lived messages to the user."""

    def notify(self, level: str, message: str, duration_ms: int = 4000) -> None:
        """Show ``message`` at ``level`` (info, success, warning, error)."""
        ...
