"""Protocol for push event sources the listener subscribes to."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SubscriptionProtocol(Protocol):
    """Cancellable registration returned by an event source."""

    active: bool

    def cancel(self) -> None: ...


@runtime_checkable
class EventSourceProtocol(Protocol):
    """Source of named push channels."""

    async def listen(
        self, name: str, handler: Callable[[Any], None]
    ) -> SubscriptionProtocol:
        """Subscribe ``handler`` to channel ``name``."""
        ...
