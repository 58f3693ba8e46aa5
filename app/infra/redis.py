"""
Redis Connection Management

One shared asyncio Redis client for the Redis-backed conversation store.
Connection failures are logged and reported as None so callers decide
how to degrade.
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)

# Key namespace, bumped when the stored payload format changes
APP_PREFIX = "scheduling:v1:"


class RedisClient:
    """
    Process-wide Redis client.

    The first caller connects and pings; concurrent callers wait on the
    same attempt instead of opening their own pools.
    """

    _client: Optional[Redis] = None
    _connected: bool = False
    _lock: Optional[asyncio.Lock] = None

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls) -> Optional[Redis]:
        """
        Connected client, or None when Redis cannot be reached.
        """
        if cls._connected and cls._client is not None:
            return cls._client

        async with cls._get_lock():
            if cls._connected and cls._client is not None:
                return cls._client

            client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=settings.redis_socket_timeout_seconds,
                socket_timeout=settings.redis_socket_timeout_seconds,
                retry_on_timeout=True,
                retry=Retry(ExponentialBackoff(), retries=settings.redis_max_retries),
            )
            try:
                await client.ping()
            except RedisError as e:
                logger.error(f"Failed to connect to Redis at {settings.redis_url}: {e}")
                await client.aclose()
                return None

            cls._client = client
            cls._connected = True
            logger.info("Redis connection established")
            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared client, if any."""
        client, cls._client, cls._connected = cls._client, None, False
        if client is None:
            return
        try:
            await client.aclose()
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._connected


async def get_redis() -> Optional[Redis]:
    """Shared Redis client, or None if Redis is unavailable."""
    return await RedisClient.get_client()


async def check_redis_health() -> bool:
    """True if Redis answers a ping."""
    client = await get_redis()
    if client is None:
        return False
    try:
        await client.ping()
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return False
    return True
