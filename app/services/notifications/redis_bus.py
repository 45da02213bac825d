"""
Redis Event Bus

Staging/production transport using Redis PUBLISH/SUBSCRIBE so that every
API process sees every event. Redis pub/sub is fire-and-forget, which
matches the at-most-once contract of the fan-out layer.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.services.notifications.base import BaseEventBus, BaseSubscription

logger = logging.getLogger(__name__)


class RedisSubscription(BaseSubscription):

    def __init__(self, client: aioredis.Redis, poll_timeout: float = 1.0):
        self._pubsub = client.pubsub(ignore_subscribe_messages=True)
        self._rooms: set[str] = set()
        self._closed = False
        self.poll_timeout = poll_timeout

    @property
    def rooms(self) -> frozenset[str]:
        return frozenset(self._rooms)

    async def join(self, room: str) -> None:
        await self._pubsub.subscribe(room)
        self._rooms.add(room)

    async def leave(self, room: str) -> None:
        if room in self._rooms:
            await self._pubsub.unsubscribe(room)
            self._rooms.discard(room)

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        while not self._closed:
            if not self._rooms:
                await asyncio.sleep(self.poll_timeout)
                continue
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=self.poll_timeout
            )
            if message is None or message.get("type") != "message":
                continue
            try:
                yield json.loads(message["data"])
            except (TypeError, ValueError) as e:
                logger.warning(f"Discarding undecodable event on {message.get('channel')}: {e}")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._rooms.clear()
        await self._pubsub.aclose()


class RedisEventBus(BaseEventBus):
    """Production event bus backed by Redis pub/sub."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client = aioredis.from_url(redis_url, decode_responses=True)
        logger.info("RedisEventBus initialized")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def publish(self, room: str, event: dict[str, Any]) -> int:
        payload = json.dumps(event, default=str)
        receivers = await self._client.publish(room, payload)
        logger.debug(f"Published {event.get('event')} to {room} ({receivers} subscribers)")
        return receivers

    def subscribe(self) -> RedisSubscription:
        return RedisSubscription(self._client)

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
