import json
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

import redis.asyncio as aioredis
from loguru import logger

from .constant import ERROR_CHANNEL_EMPTY
from .type import RedisConfig


@runtime_checkable
class IPubSub(Protocol):
    """Protocol for publish/subscribe transports."""

    async def publish(self, channel: str, message: dict) -> int:
        """Publish a JSON message, return the number of receivers."""
        ...

    def listen(self, channel: str) -> AsyncIterator[dict]:
        """Yield decoded JSON messages from a channel."""
        ...

    async def health_check(self) -> bool:
        ...

    async def close(self) -> None:
        ...


class RedisPubSubError(Exception):
    """Base exception for pub/sub operations."""

    pass


class RedisPubSub:
    """Redis pub/sub transport used to fan events out across processes.

    Example:
        >>> pubsub = RedisPubSub(RedisConfig(url="redis://localhost:6379/0"))
        >>> await pubsub.publish("sentiment.events", {"type": "alert"})
        >>> async for message in pubsub.listen("sentiment.events"):
        ...     print(message["type"])
    """

    def __init__(self, config: RedisConfig, client: Optional[aioredis.Redis] = None):
        self.config = config
        self.client = client or aioredis.from_url(
            config.url,
            encoding=config.encoding,
            decode_responses=True,
            max_connections=config.max_connections,
            socket_timeout=config.socket_timeout,
            socket_connect_timeout=config.socket_connect_timeout,
            health_check_interval=config.health_check_interval,
        )
        logger.info("Redis pub/sub client initialized")

    async def publish(self, channel: str, message: dict) -> int:
        """Publish a message as JSON.

        Raises:
            RedisPubSubError: If Redis rejects the publish.
        """
        if not channel:
            raise ValueError(ERROR_CHANNEL_EMPTY)

        body = json.dumps(message, ensure_ascii=False, default=str)
        try:
            receivers = await self.client.publish(channel, body)
        except Exception as exc:
            logger.error(f"Redis PUBLISH error on channel '{channel}': {exc}")
            raise RedisPubSubError(f"Failed to publish to {channel}: {exc}") from exc

        logger.debug(f"Published to channel={channel}, receivers={receivers}, size={len(body)} bytes")
        return receivers

    async def listen(self, channel: str) -> AsyncIterator[dict]:
        """Subscribe and yield decoded messages until cancelled."""
        if not channel:
            raise ValueError(ERROR_CHANNEL_EMPTY)

        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to Redis channel '{channel}'")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield json.loads(message["data"])
                except (json.JSONDecodeError, TypeError) as exc:
                    logger.warning(f"Dropping undecodable message on '{channel}': {exc}")
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
            logger.info(f"Unsubscribed from Redis channel '{channel}'")

    async def health_check(self) -> bool:
        try:
            return await self.client.ping()
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("Redis connection closed")


__all__ = [
    "IPubSub",
    "RedisPubSub",
    "RedisPubSubError",
]
