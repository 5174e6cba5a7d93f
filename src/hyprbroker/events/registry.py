"""Subscriber registry with filtered fan-out and bounded queues."""
import asyncio
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum

import structlog

from hyprbroker.events.types import HyprEvent, Subscription, tag_of

logger = structlog.get_logger()


class OverflowPolicy(str, Enum):
    """What happens when a subscriber queue is full at delivery time."""

    DISCONNECT = "disconnect"
    DROP_OLDEST = "drop_oldest"


class EventSink:
    """Outbound queue of events for one subscriber.

    Delivery never blocks: offer() either enqueues or reports failure.
    Closing wakes the reader, which then sees the end of the stream.
    """

    def __init__(
        self,
        maxsize: int = 0,
        overflow: OverflowPolicy = OverflowPolicy.DISCONNECT,
    ) -> None:
        """Initialize sink.

        Args:
            maxsize: Maximum queued events, 0 for unbounded.
            overflow: Policy applied when the queue is full.
        """
        # The underlying queue is unbounded so close() can always enqueue
        # its end marker; the bound is enforced in offer().
        self._queue: asyncio.Queue[HyprEvent | None] = asyncio.Queue()
        self._maxsize = maxsize
        self._overflow = overflow
        self._closed = False
        self._dropped_count = 0

    @property
    def closed(self) -> bool:
        """Whether the sink stopped accepting events."""
        return self._closed

    @property
    def dropped_events(self) -> int:
        """Events discarded under the drop-oldest policy."""
        return self._dropped_count

    def qsize(self) -> int:
        return self._queue.qsize()

    def offer(self, event: HyprEvent) -> bool:
        """Enqueue an event without blocking.

        Args:
            event: Event to deliver.

        Returns:
            True if the event was queued, False if the sink is closed or
            full under the disconnect policy.
        """
        if self._closed:
            return False

        if self._maxsize and self._queue.qsize() >= self._maxsize:
            if self._overflow is OverflowPolicy.DISCONNECT:
                return False
            self._queue.get_nowait()
            self._dropped_count += 1

        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        """Stop accepting events and wake the reader.

        Idempotent. Events already queued are still handed out before the
        reader sees the end of the stream.
        """
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def receive(self) -> HyprEvent | None:
        """Wait for the next event.

        Returns:
            Next event, or None once the sink has been closed and drained.
        """
        if self._closed and self._queue.empty():
            return None
        event = await self._queue.get()
        if event is None:
            # Leave the marker in place for any later receive() call.
            self._queue.put_nowait(None)
        return event

    async def __aiter__(self) -> AsyncIterator[HyprEvent]:
        while True:
            event = await self.receive()
            if event is None:
                return
            yield event


@dataclass
class Subscriber:
    """Registry entry pairing a delivery sink with its filter.

    Attributes:
        subscription: Filter applied at dispatch time.
        sink: Queue the client session drains.
        id: Unique subscriber identifier (UUID).
    """

    subscription: Subscription
    sink: EventSink
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class SubscriptionRegistry:
    """Live subscribers and the dispatch pass that feeds them.

    A single asyncio lock covers registration, removal and the whole scan
    of each dispatch, so every subscriber sees events in ingestion order
    and a registration lands either entirely before or entirely after a
    given dispatch.

    Attributes:
        queue_size: Bound applied to sinks created by register().
        overflow: Policy applied to sinks created by register().
    """

    def __init__(
        self,
        queue_size: int = 1024,
        overflow: OverflowPolicy = OverflowPolicy.DISCONNECT,
    ) -> None:
        """Initialize registry.

        Args:
            queue_size: Maximum items per subscriber queue, 0 for unbounded.
            overflow: Policy for full subscriber queues.
        """
        self._subscribers: dict[str, Subscriber] = {}
        self._queue_size = queue_size
        self._overflow = overflow
        self._removed_count = 0
        self._dropped_count = 0
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        """Number of live subscribers."""
        return len(self._subscribers)

    @property
    def removed_subscribers(self) -> int:
        """Subscribers removed because delivery to them failed."""
        return self._removed_count

    @property
    def dropped_events(self) -> int:
        """Events discarded by drop-oldest sinks, including removed ones."""
        return self._dropped_count + sum(
            sub.sink.dropped_events for sub in self._subscribers.values()
        )

    def create_sink(self) -> EventSink:
        """Create a sink using this registry's queue settings."""
        return EventSink(maxsize=self._queue_size, overflow=self._overflow)

    async def register(
        self,
        subscription: Subscription,
        sink: EventSink | None = None,
    ) -> Subscriber:
        """Add a subscriber.

        Args:
            subscription: Filter for the new subscriber.
            sink: Delivery sink; one is created from the registry's queue
                settings when omitted.

        Returns:
            The registered subscriber handle.
        """
        subscriber = Subscriber(
            subscription=subscription,
            sink=sink if sink is not None else self.create_sink(),
        )
        async with self._lock:
            self._subscribers[subscriber.id] = subscriber

        logger.debug(
            "subscriber_registered",
            subscriber_id=subscriber.id,
            subscription=str(subscription),
            subscriber_count=self.subscriber_count,
        )
        return subscriber

    async def deregister(self, subscriber_id: str) -> bool:
        """Remove a subscriber and close its sink.

        Args:
            subscriber_id: ID returned by register().

        Returns:
            True if the subscriber was still registered.
        """
        async with self._lock:
            subscriber = self._subscribers.pop(subscriber_id, None)
            if subscriber is None:
                return False
            self._retire(subscriber)

        logger.debug(
            "subscriber_removed",
            subscriber_id=subscriber_id,
            subscriber_count=self.subscriber_count,
        )
        return True

    async def dispatch(self, event: HyprEvent) -> int:
        """Deliver an event to every subscriber whose filter accepts it.

        Subscribers whose sink refuses the event are removed and their
        sink closed during the same pass.

        Args:
            event: Event to deliver.

        Returns:
            Number of subscribers that received the event.
        """
        tag = tag_of(event)
        delivered = 0
        failed: list[str] = []

        async with self._lock:
            for subscriber_id, subscriber in list(self._subscribers.items()):
                if not subscriber.subscription.matches(tag):
                    continue
                if subscriber.sink.offer(event):
                    delivered += 1
                    continue
                del self._subscribers[subscriber_id]
                self._retire(subscriber)
                self._removed_count += 1
                failed.append(subscriber_id)

        for subscriber_id in failed:
            logger.info(
                "subscriber_dropped",
                subscriber_id=subscriber_id,
                tag=tag,
                subscriber_count=self.subscriber_count,
            )
        return delivered

    def _retire(self, subscriber: Subscriber) -> None:
        subscriber.sink.close()
        self._dropped_count += subscriber.sink.dropped_events
