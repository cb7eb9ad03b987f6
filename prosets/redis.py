"""
Redis connection used for the Stripe event-id cache.

Redis only speeds things up here. The order row stays the settlement
gate, so every caller must accept a missing client or a RedisError and
carry on against the database.
"""

from typing import Optional
import logging

from redis import asyncio as aioredis
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from prosets.config import settings

logger = logging.getLogger(__name__)

REDIS_UP = "up"
REDIS_DOWN = "down"
REDIS_DISABLED = "disabled"


class RedisClient:
    """Lazily created asyncio client; None when no URL is configured."""

    _client: Optional[Redis] = None

    @classmethod
    def get_client(cls) -> Optional[Redis]:
        if not settings.redis_url:
            return None

        if cls._client is None:
            cls._client = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_timeout=settings.redis_socket_timeout,
                socket_connect_timeout=settings.redis_socket_timeout,
                client_name=f"{settings.app_name}-api",
            )
            logger.info("Redis client initialized for webhook event cache")

        return cls._client

    @classmethod
    async def close(cls):
        if cls._client:
            await cls._client.aclose()
            cls._client = None
            logger.info("Redis client closed")


async def redis_status(client: Optional[Redis]) -> str:
    """Report whether the event cache is usable, for the health check."""
    if client is None:
        return REDIS_DISABLED
    try:
        await client.ping()
    except RedisError as e:
        logger.warning(f"Redis ping failed, webhooks fall back to the database: {e}")
        return REDIS_DOWN
    return REDIS_UP


async def get_redis() -> Optional[Redis]:
    """Dependency for the event cache client (None when disabled)."""
    return RedisClient.get_client()
