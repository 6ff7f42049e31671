"""Event stream listener: feeds pushed tool events into the registry.

The listener subscribes to the output and completion channels for the
lifetime of a session. ``stop()`` is synchronous and flips a guard captured
at subscribe time, so callbacks that were already queued when it ran do not
touch the registry afterwards.
"""

import logging
from enum import Enum
from types import TracebackType

from penumbra.core.structlog_logger import StructlogMixin
from penumbra.operations.events import COMPLETE_CHANNEL, OUTPUT_CHANNEL
from penumbra.operations.models import (
    LogEntry,
    LogLevel,
    OperationCompleteEvent,
    OperationOutputEvent,
)
from penumbra.operations.progress import parse_progress_line
from penumbra.operations.registry import OperationRegistry
from penumbra.protocols import EventSourceProtocol, SubscriptionProtocol


ERROR_KEYWORDS = ("error", "failed")
WARNING_KEYWORDS = ("warning", "warn")
SUCCESS_KEYWORDS = ("success", "complete", "found")


def classify_line_level(line: str, is_stderr: bool = False) -> LogLevel:
    """Pick the log level for a line of tool output.

    stderr defaults to error, stdout to info; keywords in the line override
    the default, checked error first, then warning, then success.
    """
    lower_line = line.lower()
    if any(keyword in lower_line for keyword in ERROR_KEYWORDS):
        return LogLevel.ERROR
    if any(keyword in lower_line for keyword in WARNING_KEYWORDS):
        return LogLevel.WARNING
    if any(keyword in lower_line for keyword in SUCCESS_KEYWORDS):
        return LogLevel.SUCCESS
    return LogLevel.ERROR if is_stderr else LogLevel.INFO


class ListenerState(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"


class _Mount:
    """Guard shared by the callbacks of one subscribe cycle."""

    def __init__(self) -> None:
        self.mounted = True


class EventStreamListener(StructlogMixin):
    """Applies output and completion events to the operation registry."""

    def __init__(
        self,
        registry: OperationRegistry,
        events: EventSourceProtocol,
        track_progress: bool = True,
    ) -> None:
        super().__init__()
        self.registry = registry
        self.events = events
        self.track_progress = track_progress
        self.state = ListenerState.UNSUBSCRIBED
        self._mount: _Mount | None = None
        self._subscriptions: list[SubscriptionProtocol] = []

    async def start(self) -> None:
        """Subscribe to both channels. Calling it again while active is a no-op.

        Subscription failures are logged and leave the listener unsubscribed.
        """
        if self.state != ListenerState.UNSUBSCRIBED:
            return

        mount = _Mount()
        self._mount = mount
        self.state = ListenerState.SUBSCRIBING
        acquired: list[SubscriptionProtocol] = []

        try:
            acquired.append(
                await self.events.listen(
                    OUTPUT_CHANNEL, lambda event: self._on_output(mount, event)
                )
            )
            acquired.append(
                await self.events.listen(
                    COMPLETE_CHANNEL, lambda event: self._on_complete(mount, event)
                )
            )
        except Exception as e:
            exc_info = logging.getLogger().isEnabledFor(logging.DEBUG)
            self.logger.error(
                "event_subscription_failed", error=str(e), exc_info=exc_info
            )
            for subscription in acquired:
                subscription.cancel()
            if self._mount is mount:
                self._mount = None
                self.state = ListenerState.UNSUBSCRIBED
            return

        if not mount.mounted:
            # stop() ran while we were subscribing
            for subscription in acquired:
                subscription.cancel()
            return

        self._subscriptions = acquired
        self.state = ListenerState.SUBSCRIBED
        self.logger.debug("event_listener_subscribed")

    def stop(self) -> None:
        """Tear down synchronously; queued callbacks become no-ops."""
        if self._mount is not None:
            self._mount.mounted = False
            self._mount = None
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []
        if self.state != ListenerState.UNSUBSCRIBED:
            self.logger.debug("event_listener_unsubscribed")
        self.state = ListenerState.UNSUBSCRIBED

    async def __aenter__(self) -> "EventStreamListener":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def _on_output(self, mount: _Mount, event: OperationOutputEvent) -> None:
        if not mount.mounted:
            return

        self.registry.add_log(
            LogEntry(
                timestamp=event.timestamp,
                level=classify_line_level(event.line, event.is_stderr),
                message=event.line,
            )
        )

        if not self.track_progress or not self.registry.is_running:
            return
        if self.registry.operation_id not in (None, event.operation_id):
            return
        operation = self.registry.operation
        snapshot = parse_progress_line(
            event.line, subject_name=operation.subject_name, kind=operation.kind
        )
        if snapshot is not None:
            self.registry.update_progress(snapshot)

    def _on_complete(self, mount: _Mount, event: OperationCompleteEvent) -> None:
        if not mount.mounted:
            return

        # Applied to whatever operation is current, matching id or not
        if event.operation_id != self.registry.operation_id:
            self.logger.debug(
                "completion_for_other_operation",
                event_operation_id=event.operation_id,
                current_operation_id=self.registry.operation_id,
            )
        self.registry.finish(event.success, event.error)
        self.registry.set_streaming(False)


def create_event_listener(
    registry: OperationRegistry, events: EventSourceProtocol
) -> EventStreamListener:
    """Factory function to create an EventStreamListener."""
    return EventStreamListener(registry, events)
