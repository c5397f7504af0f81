"""Redis Streams client for inter-service communication.

Redis URL is passed explicitly or read from environment.
"""

import json
import os
from typing import Any

import redis.asyncio as redis
import structlog

from shared.contracts.base import BaseMessage

logger = structlog.get_logger(__name__)


class RedisStreamClient:
    """Client for Redis Streams-based message passing."""

    def __init__(self, redis_url: str | None = None, client: redis.Redis | None = None):
        """Initialize Redis client.

        Args:
            redis_url: Redis connection URL. Falls back to REDIS_URL env var.
            client: Already-connected client (tests pass a fakeredis instance).
        """
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        if client is None and not self.redis_url:
            raise RuntimeError(
                "Redis URL not provided. Pass redis_url argument or set REDIS_URL env var."
            )
        self._redis: redis.Redis | None = client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
            logger.info("redis_connected", redis_url=self.redis_url)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("redis_connection_closed")

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, ensuring connection."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    async def publish(self, stream: str, data: dict[str, Any]) -> str:
        """Publish a dict to a Redis Stream."""
        message = {"data": json.dumps(data)}
        message_id = await self.redis.xadd(stream, message)
        logger.debug("message_published", stream=stream, message_id=message_id)
        return message_id

    async def publish_message(self, stream: str, message: BaseMessage) -> str:
        """Publish a Pydantic DTO to a Redis Stream."""
        # mode=json so datetimes serialize
        data = message.model_dump(mode="json")
        return await self.publish(stream, data)
