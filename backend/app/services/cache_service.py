"""
Redis cache for the public room availability listing.

CACHING STRATEGY
================

What we cache:
  - The availability listing for one [start, end) range
  - Key: "rooms:availability:{generation}:{start}:{end}"

Invalidation:
  - Every booking or room write bumps "rooms:availability:generation"
    (one INCR), so readers stop seeing older keys immediately
  - Orphaned keys from older generations age out via REDIS_CACHE_TTL

The overlap check inside booking creation and confirmation never reads this
cache; it runs against the database under the room lock.

All helpers degrade to "no cache" when Redis is disabled or failing.
"""

import json
from datetime import date
from typing import Awaitable, Callable, Optional

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import record_cache_operation
from app.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

AVAILABILITY_PREFIX = "rooms:availability:"
GENERATION_KEY = AVAILABILITY_PREFIX + "generation"


def availability_key(generation: int, start: date, end: date) -> str:
    return f"{AVAILABILITY_PREFIX}{generation}:{start.isoformat()}:{end.isoformat()}"


async def _current_key(client, start: date, end: date) -> str:
    generation = await client.get(GENERATION_KEY)
    return availability_key(int(generation or 0), start, end)


async def get_cached_availability(start: date, end: date) -> Optional[list]:
    client = await get_redis()
    if not client:
        return None

    try:
        key = await _current_key(client, start, end)
        data = await client.get(key)
    except Exception as e:
        logger.error("cache_get_error", start=start.isoformat(), end=end.isoformat(), error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    return json.loads(data) if data is not None else None


async def set_cached_availability(start: date, end: date, data: list) -> None:
    client = await get_redis()
    if not client:
        return

    try:
        key = await _current_key(client, start, end)
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", start=start.isoformat(), end=end.isoformat(), error=str(e))


async def cached_availability(start: date, end: date, load: Callable[[], Awaitable[list]]) -> list:
    """Serve the listing from cache, or load it and cache the result."""
    cached = await get_cached_availability(start, end)
    if cached is not None:
        return cached
    data = await load()
    await set_cached_availability(start, end, data)
    return data


async def invalidate_availability_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        generation = await client.incr(GENERATION_KEY)
        logger.info("availability_cache_invalidated", generation=generation)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis keyspace hit rate for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except Exception as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
