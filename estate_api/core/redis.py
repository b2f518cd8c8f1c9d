"""Redis connection management (backs the JWT revocation list)."""

from __future__ import annotations

import redis.asyncio as redis

from estate_api.core.config import get_settings

settings = get_settings()

_redis_pool: redis.Redis | None = None


async def get_redis() -> redis.Redis | None:
    """Get or create the Redis connection. Returns None when Redis is not configured."""
    global _redis_pool
    if not settings.redis_url:
        return None
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_pool


async def ping_redis() -> bool:
    """Readiness probe helper. An unconfigured Redis counts as healthy."""
    client = await get_redis()
    if client is None:
        return True
    try:
        return bool(await client.ping())
    except redis.RedisError:
        return False


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
