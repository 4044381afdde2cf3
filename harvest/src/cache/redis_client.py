"""
Redis client for the current-snapshot cache.

Provides helpers for creating Redis connections and for reading, writing
and invalidating the cached ``/v1/current`` payload. All cache operations
are best-effort: Redis failures are logged but never propagate, so neither
ingestion nor queries depend on cache infrastructure.

CHANGELOG:
- 2026-10-19: Take the Redis URL from settings instead of the environment
- 2026-10-19: Initial creation (STORY-007)
"""

import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)

CURRENT_CACHE_KEY = "current:solar"


async def get_redis(redis_url: str) -> redis.Redis:
    """Create and return an async Redis client for *redis_url*."""
    return redis.from_url(redis_url)


async def get_cached_current(redis_url: str) -> str | None:
    """Return the cached current snapshot JSON, or None on miss or failure."""
    try:
        client = await get_redis(redis_url)
        try:
            cached = await client.get(CURRENT_CACHE_KEY)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis read failed for key %s, falling back to DB",
            CURRENT_CACHE_KEY,
            exc_info=True,
        )
        return None
    if cached is None:
        return None
    return cached.decode("utf-8") if isinstance(cached, bytes) else cached


async def set_cached_current(redis_url: str, payload: str, ttl_s: int) -> None:
    """Cache the current snapshot JSON for *ttl_s* seconds (best-effort)."""
    try:
        client = await get_redis(redis_url)
        try:
            await client.set(CURRENT_CACHE_KEY, payload, ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis write failed for key %s",
            CURRENT_CACHE_KEY,
            exc_info=True,
        )


async def invalidate_current_cache(redis_url: str) -> None:
    """Delete the cached current snapshot (best-effort).

    Called after every committed insert so the next query sees the new
    reading.
    """
    try:
        client = await get_redis(redis_url)
        try:
            await client.delete(CURRENT_CACHE_KEY)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache key %s",
            CURRENT_CACHE_KEY,
            exc_info=True,
        )
