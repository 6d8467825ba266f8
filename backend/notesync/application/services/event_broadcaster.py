"""Event broadcaster — in-process fan-out of sync and record-change events."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Per-subscriber backlog before the subscriber is considered dead
MAX_PENDING_EVENTS = 256


@dataclass
class SyncEvent:
    """A single notification: ``sync_complete``, ``record_changed``, ..."""

    type: str
    topic: str | None
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        return f"event: {self.type}\ndata: {json.dumps(self.data)}\n\n"


@dataclass
class _Subscription:
    topic: str | None
    queue: asyncio.Queue["SyncEvent | None"]


class EventBroadcaster:
    """Broadcasts events to subscribers, optionally filtered by topic (owner id).

    Each subscriber gets its own asyncio.Queue. Publishing pushes the event
    to every matching queue. Consumers are notified only for feedback;
    nothing in the sync engine waits on them.
    """

    def __init__(self, max_pending: int = MAX_PENDING_EVENTS) -> None:
        self._subscriptions: list[_Subscription] = []
        self._max_pending = max_pending

    async def subscribe(self, topic: str | None = None) -> AsyncGenerator[SyncEvent, None]:
        """Subscribe to events for ``topic`` (``None`` receives everything).

        The generator unsubscribes automatically when the consumer stops.
        """
        subscription = _Subscription(topic, asyncio.Queue(maxsize=self._max_pending))
        self._subscriptions.append(subscription)
        try:
            while True:
                event = await subscription.queue.get()
                if event is None:
                    break
                yield event
        finally:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    async def publish(self, topic: str | None, event_type: str, data: dict[str, Any]) -> None:
        """Deliver an event to every subscriber of ``topic`` and to wildcard subscribers."""
        event = SyncEvent(type=event_type, topic=topic, data=data)
        dead: list[_Subscription] = []

        for subscription in self._subscriptions:
            if subscription.topic is not None and subscription.topic != topic:
                continue
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                dead.append(subscription)
                logger.warning("Event subscriber queue full — disconnecting")

        for subscription in dead:
            self._subscriptions.remove(subscription)
            _close(subscription.queue)

    async def shutdown(self) -> None:
        """Disconnect all subscribers."""
        for subscription in self._subscriptions:
            _close(subscription.queue)
        self._subscriptions.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


def _close(queue: asyncio.Queue) -> None:
    """Wake the consumer with the end-of-stream marker, dropping backlog if needed."""
    while True:
        try:
            queue.put_nowait(None)
            return
        except asyncio.QueueFull:
            queue.get_nowait()
