"""
Event Bus Abstract Base Class

Defines the room-based publish/subscribe interface used for live order
tracking. Delivery is best-effort and at most once: there is no retry,
no durable queue and no acknowledgment. A subscriber that is not connected
when an event is published simply misses it and re-reads the order.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


def order_room(order_id: str) -> str:
    return f"order_{order_id}"


def restaurant_room(restaurant_id: str) -> str:
    return f"restaurant_{restaurant_id}"


class BaseSubscription(ABC):
    """One live listener that can join any number of rooms."""

    @property
    @abstractmethod
    def rooms(self) -> frozenset[str]:
        pass

    @abstractmethod
    async def join(self, room: str) -> None:
        pass

    @abstractmethod
    async def leave(self, room: str) -> None:
        pass

    @abstractmethod
    def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield events published to joined rooms until closed."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class BaseEventBus(ABC):
    """Abstract base class for event fan-out transports."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def publish(self, room: str, event: dict[str, Any]) -> int:
        """
        Publish an event to every current subscriber of ``room``.

        Returns:
            Number of subscribers the event was handed to
        """
        pass

    @abstractmethod
    def subscribe(self) -> BaseSubscription:
        """Open a new subscription with no rooms joined."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check transport connectivity."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
