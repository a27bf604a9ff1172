"""
Redis Cache Service

Provides a caching layer for resolved statutory rule sets.
TTL-based with key prefixing and JSON serialization. Fails open: any Redis
error is treated as a cache miss.
"""

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from backend.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Lazy-initialized connection pool
_redis: aioredis.Redis | None = None


async def _get_redis() -> aioredis.Redis:
    """Get or create Redis connection."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
        )
    return _redis


async def get_cached(key: str) -> Any | None:
    """
    Get a cached value by key.

    Returns None if key doesn't exist or Redis is unavailable.
    """
    try:
        r = await _get_redis()
        data = await r.get(key)
        if data:
            return json.loads(data)
        return None
    except Exception as e:
        logger.debug(f"Cache miss (error): {key}: {e}")
        return None


async def set_cached(key: str, value: Any, ttl: int) -> bool:
    """
    Set a cached value with TTL.

    Returns True if cached successfully, False on error.
    """
    try:
        r = await _get_redis()
        await r.set(key, json.dumps(value, default=str), ex=ttl)
        return True
    except Exception as e:
        logger.debug(f"Cache set failed: {key}: {e}")
        return False


async def invalidate_pattern(pattern: str) -> int:
    """
    Delete all keys matching a pattern.

    Uses SCAN to avoid blocking Redis on large keyspaces.
    Returns number of keys deleted.
    """
    try:
        r = await _get_redis()
        count = 0
        async for key in r.scan_iter(match=pattern, count=100):
            await r.delete(key)
            count += 1
        return count
    except Exception as e:
        logger.debug(f"Cache pattern invalidate failed: {pattern}: {e}")
        return 0


# ── Key Builders ──────────────────────────────────────


def rules_key(company_id: str, jurisdiction: str, as_of: str) -> str:
    """Cache key for the rule set resolved for a company on a date."""
    return f"rules:{company_id}:{jurisdiction}:{as_of}"


def rules_pattern(company_id: str | None = None) -> str:
    """Pattern matching cached rule sets for one company, or all when None."""
    return f"rules:{company_id or '*'}:*"
