"""
Event Bus Factory

Returns the in-memory or Redis event bus based on ENV_MODE.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.notifications.base import (
    BaseEventBus,
    BaseSubscription,
    order_room,
    restaurant_room,
)
from app.services.notifications.fanout import OrderNotifier
from app.services.notifications.memory import InMemoryEventBus
from app.services.notifications.redis_bus import RedisEventBus

logger = logging.getLogger(__name__)


@lru_cache()
def get_event_bus() -> BaseEventBus:
    """Get the configured event bus."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Event Bus: Using InMemoryEventBus (development mode)")
        return InMemoryEventBus(queue_size=settings.subscriber_queue_size)
    else:
        logger.info(f"Event Bus: Using RedisEventBus ({settings.env_mode.value} mode)")
        return RedisEventBus(settings.redis_url)


def reset_event_bus() -> None:
    """Clear the cached bus instance."""
    get_event_bus.cache_clear()


def get_order_notifier() -> OrderNotifier:
    """FastAPI dependency: post-commit notifier bound to the current bus."""
    return OrderNotifier(get_event_bus())


__all__ = [
    "get_event_bus",
    "reset_event_bus",
    "get_order_notifier",
    "BaseEventBus",
    "BaseSubscription",
    "InMemoryEventBus",
    "RedisEventBus",
    "OrderNotifier",
    "order_room",
    "restaurant_room",
]
