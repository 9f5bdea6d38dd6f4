"""Startup warmup so the first request does not pay for connection setup.

Failures are logged and never abort startup: the store reports its own errors
per request once traffic arrives.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from weather_locations.db.connection import DatabaseEngines
from weather_locations.messaging import RedisProvider

logger = logging.getLogger(__name__)


async def warmup_database(engine: AsyncEngine, *, label: str = "primary") -> bool:
    """Open a pooled connection on ``engine`` and issue ``SELECT 1``."""

    try:
        start = time.perf_counter()
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("Database %s connection warmed up (%.0fms)", label, elapsed)
        return True
    except Exception as exc:
        logger.warning("Database %s warmup failed: %s", label, exc)
        return False


async def warmup_redis(provider: RedisProvider) -> bool:
    """Establish the Redis connection; an unavailable server is not fatal."""

    start = time.perf_counter()
    redis = await provider.get()
    if redis is None:
        logger.info("Redis warmup skipped (connection unavailable)")
        return False

    elapsed = (time.perf_counter() - start) * 1000
    logger.info("Redis connection warmed up (%.0fms)", elapsed)
    return True


async def warmup_all(engines: DatabaseEngines, redis_provider: RedisProvider) -> None:
    """Warm the primary, the replica (when distinct) and Redis in sequence."""

    logger.info("=" * 60)
    logger.info("Warming up backend connections...")
    logger.info("=" * 60)

    start = time.perf_counter()

    await warmup_database(engines.primary, label="primary")
    if engines.has_dedicated_replica:
        await warmup_database(engines.replica, label="replica")
    await warmup_redis(redis_provider)

    total_elapsed = (time.perf_counter() - start) * 1000
    logger.info("Backend warmup complete (%.0fms)", total_elapsed)


__all__ = ["warmup_all", "warmup_database", "warmup_redis"]
