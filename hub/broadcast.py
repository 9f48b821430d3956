import asyncio
import itertools
import logging
from typing import Any

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class Subscription:
    """One connected session's inbox. Events are delivered in publish order."""

    def __init__(self):
        self.id = next(_ids)
        self.queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()

    def deliver(self, event: str, data: Any):
        self.queue.put_nowait((event, data))

    def drain(self) -> list[tuple[str, Any]]:
        items = []
        while not self.queue.empty():
            items.append(self.queue.get_nowait())
        return items


class Broadcaster:
    def __init__(self):
        self._subscribers: dict[int, Subscription] = {}

    def subscribe(self, *initial: tuple[str, Any]) -> Subscription:
        """Register a session, queueing `initial` events ahead of any broadcast."""
        sub = Subscription()
        for event, data in initial:
            sub.deliver(event, data)
        self._subscribers[sub.id] = sub
        logger.info("Session %d subscribed (%d connected)", sub.id, len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription):
        if self._subscribers.pop(sub.id, None) is not None:
            logger.info("Session %d unsubscribed (%d connected)", sub.id, len(self._subscribers))

    def publish(self, event: str, data: Any):
        for sub in list(self._subscribers.values()):
            sub.deliver(event, data)

    @property
    def session_count(self) -> int:
        return len(self._subscribers)
