"""Shared async Redis client."""
from __future__ import annotations

import redis.asyncio as redis

from config import get_redis_connection_kwargs, settings

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the process-wide Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL, **get_redis_connection_kwargs()
        )
    return _redis_client


async def close_redis() -> None:
    """Close the Redis client (worker event loops are short-lived)."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def redis_key(*parts: str) -> str:
    """Build a namespaced Redis key."""
    return ":".join((settings.REDIS_KEY_PREFIX, *parts))
