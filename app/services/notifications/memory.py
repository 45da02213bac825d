"""
In-Memory Event Bus

Development and test transport: rooms live in this process only. Each
subscriber has a bounded queue; when it is full the event is dropped for
that subscriber rather than slowing the publisher down.
"""

import asyncio
import logging
from collections import deque
from typing import Any, AsyncIterator

from app.services.notifications.base import BaseEventBus, BaseSubscription

logger = logging.getLogger(__name__)

_CLOSED = object()


class MemorySubscription(BaseSubscription):

    def __init__(self, bus: "InMemoryEventBus", queue_size: int):
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._rooms: set[str] = set()
        self._closed = False
        self.dropped = 0

    @property
    def rooms(self) -> frozenset[str]:
        return frozenset(self._rooms)

    async def join(self, room: str) -> None:
        self._rooms.add(room)
        self._bus._rooms.setdefault(room, set()).add(self)

    async def leave(self, room: str) -> None:
        self._rooms.discard(room)
        members = self._bus._rooms.get(room)
        if members is not None:
            members.discard(self)
            if not members:
                del self._bus._rooms[room]

    def deliver(self, event: dict[str, Any]) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Subscriber queue full, dropped {event.get('event')} event")
            return False
        return True

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                return
            yield event

    async def close(self) -> None:
        if self._closed:
            return
        for room in list(self._rooms):
            await self.leave(room)
        self._closed = True
        # Make room for the sentinel so a blocked reader wakes up.
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)


class InMemoryEventBus(BaseEventBus):
    """Single-process room registry."""

    def __init__(self, queue_size: int = 100, history_size: int = 200):
        self.queue_size = queue_size
        self._rooms: dict[str, set[MemorySubscription]] = {}
        self.history: deque[tuple[str, dict[str, Any]]] = deque(maxlen=history_size)
        logger.info(f"InMemoryEventBus initialized (queue_size={queue_size})")

    @property
    def provider_name(self) -> str:
        return "memory"

    async def publish(self, room: str, event: dict[str, Any]) -> int:
        self.history.append((room, event))
        delivered = 0
        for subscription in list(self._rooms.get(room, ())):
            if subscription.deliver(event):
                delivered += 1
        logger.debug(f"Published {event.get('event')} to {room} ({delivered} subscribers)")
        return delivered

    def subscribe(self) -> MemorySubscription:
        return MemorySubscription(self, self.queue_size)

    def subscriber_count(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    def published_to(self, room: str) -> list[dict[str, Any]]:
        """Events recently published to ``room`` (oldest first)."""
        return [event for r, event in self.history if r == room]

    async def health_check(self) -> bool:
        return True
