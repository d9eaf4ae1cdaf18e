"""Async Redis client with graceful fallback.

Caches capability-code lookups in front of the index table. If Redis is
unavailable, operations log warnings and return None/defaults; the store is
always the source of truth and nothing fails because Redis is down.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from invite_store.config import settings

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None


async def connect_redis() -> None:
    """Connect to Redis. Logs warning if unavailable; does not raise."""
    global _redis
    try:
        _redis = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
        await _redis.ping()
        logger.info("Redis connected at %s", settings.redis_url)
    except Exception:
        logger.warning("Redis unavailable at %s, running without lookup cache", settings.redis_url)
        _redis = None


async def disconnect_redis() -> None:
    """Close Redis connection if open."""
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
        logger.info("Redis disconnected")


def get_redis() -> aioredis.Redis | None:
    """Return the shared Redis instance (or None if unavailable)."""
    return _redis


# ---------------------------------------------------------------------------
# Cache helpers
# ---------------------------------------------------------------------------

async def cache_set(key: str, value: Any, ttl: int = 300, *, nx: bool = False) -> None:
    """Store a JSON-serializable value with TTL (seconds). No-op if Redis is down.

    With `nx`, an existing key is left untouched.
    """
    if _redis is None:
        return
    try:
        await _redis.set(key, json.dumps(value), ex=ttl, nx=nx)
    except Exception:
        logger.warning("Redis cache_set failed for key %s", key)


async def cache_get(key: str) -> Any | None:
    """Retrieve a cached value. Returns None if missing or Redis is down."""
    if _redis is None:
        return None
    try:
        raw = await _redis.get(key)
        return json.loads(raw) if raw is not None else None
    except Exception:
        logger.warning("Redis cache_get failed for key %s", key)
        return None


# ---------------------------------------------------------------------------
# Code lookups
# ---------------------------------------------------------------------------

# Written in place of an evicted entry so a lookup that read the index row
# before the delete committed cannot re-fill the cache with it.
_TOMBSTONE = {"deleted": True}


def _code_key(code: str) -> str:
    return f"invitation:code:{code}"


async def set_cached_code(code: str, team: str, invitation_id: str) -> None:
    """Remember which invitation a code resolves to, unless the key is already taken."""
    if not settings.cache_enabled:
        return
    await cache_set(
        _code_key(code),
        {"team": team, "id": invitation_id},
        ttl=settings.lookup_cache_ttl,
        nx=True,
    )


async def get_cached_code(code: str) -> dict | None:
    """Return {"team": ..., "id": ...} for a cached code, or None.

    Tombstones and anything else not shaped like an entry count as a miss.
    """
    if not settings.cache_enabled:
        return None
    cached = await cache_get(_code_key(code))
    if not isinstance(cached, dict):
        return None
    if not isinstance(cached.get("team"), str) or not isinstance(cached.get("id"), str):
        return None
    return cached


async def forget_cached_code(code: str) -> None:
    """Replace a cached code with a short-lived tombstone."""
    if not settings.cache_enabled:
        return
    await cache_set(_code_key(code), _TOMBSTONE, ttl=settings.lookup_tombstone_ttl)
