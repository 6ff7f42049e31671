"""Typed push channels for operation output and completion events.

Each channel hands out cancellable subscriptions. Deliveries are queued on the
running event loop; a subscription cancelled before a queued delivery runs
never sees that event.
"""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from penumbra.core.structlog_logger import get_struct_logger
from penumbra.operations.models import OperationCompleteEvent, OperationOutputEvent


logger = get_struct_logger(__name__)

OUTPUT_CHANNEL = "operation:output"
COMPLETE_CHANNEL = "operation:complete"

E = TypeVar("E", bound=BaseModel)


class Subscription(Generic[E]):
    """Handle for one registered handler on a channel."""

    def __init__(self, channel: "EventChannel[E]", handler: Callable[[E], None]):
        self.channel = channel
        self.handler = handler
        self.active = True

    def cancel(self) -> None:
        """Stop delivery, including deliveries already queued on the loop."""
        if not self.active:
            return
        self.active = False
        self.channel._remove(self)

    def _deliver(self, event: E) -> None:
        if self.active:
            self.handler(event)


class EventStream(Generic[E]):
    """Async iterator over a channel's events, backed by a subscription."""

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.subscription: Subscription[E] | None = None

    def _push(self, event: E) -> None:
        self._queue.put_nowait(event)

    def cancel(self) -> None:
        if self.subscription is not None:
            self.subscription.cancel()
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> "EventStream[E]":
        return self

    async def __anext__(self) -> E:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[no-any-return]


class EventChannel(Generic[E]):
    """A named channel carrying one event model type."""

    def __init__(self, name: str, event_type: type[E]) -> None:
        self.name = name
        self.event_type = event_type
        self._subscriptions: list[Subscription[E]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def listen(self, handler: Callable[[E], None]) -> Subscription[E]:
        """Register ``handler`` and return its subscription."""
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        logger.debug("channel_subscribed", channel=self.name)
        return subscription

    async def stream(self) -> EventStream[E]:
        """Return an async iterator that yields events until cancelled."""
        event_stream: EventStream[E] = EventStream()
        event_stream.subscription = await self.listen(event_stream._push)
        return event_stream

    def emit(self, event: E | Mapping[str, Any]) -> None:
        """Publish an event to every active subscription.

        Mappings are validated into the channel's event type first. Inside a
        running loop deliveries are scheduled with ``call_soon``; without one
        they run immediately.
        """
        if isinstance(event, Mapping):
            event = self.event_type.model_validate(event)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        for subscription in list(self._subscriptions):
            if loop is None:
                subscription._deliver(event)  # type: ignore[arg-type]
            else:
                loop.call_soon(subscription._deliver, event)

    def _remove(self, subscription: Subscription[E]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("channel_unsubscribed", channel=self.name)


class EventBus:
    """The two push channels the operation engine listens to."""

    def __init__(self) -> None:
        self.output: EventChannel[OperationOutputEvent] = EventChannel(
            OUTPUT_CHANNEL, OperationOutputEvent
        )
        self.complete: EventChannel[OperationCompleteEvent] = EventChannel(
            COMPLETE_CHANNEL, OperationCompleteEvent
        )
        self._channels: dict[str, EventChannel[Any]] = {
            OUTPUT_CHANNEL: self.output,
            COMPLETE_CHANNEL: self.complete,
        }

    def channel(self, name: str) -> EventChannel[Any]:
        try:
            return self._channels[name]
        except KeyError:
            raise ValueError(f"Unknown event channel: {name}") from None

    async def listen(
        self, name: str, handler: Callable[[Any], None]
    ) -> Subscription[Any]:
        return await self.channel(name).listen(handler)

    def emit(self, name: str, event: BaseModel | Mapping[str, Any]) -> None:
        self.channel(name).emit(event)


def create_event_bus() -> EventBus:
    """Factory function to create an EventBus."""
    return EventBus()
