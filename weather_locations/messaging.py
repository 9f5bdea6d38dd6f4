"""Redis access for live-update fan-out and enrichment jobs.

The client is created lazily, shared for the lifetime of the application and
disabled after a connection failure so a missing Redis never slows down the
request path.  Both helpers on :class:`RedisPublisher` report whether the
message left the process; callers treat ``False`` as "skipped".
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

logger = logging.getLogger(__name__)

_REDIS_SOCKET_TIMEOUT_SECONDS = 2.0


class RedisProvider:
    """Owns the shared asyncio Redis client for one application."""

    def __init__(self, url: str) -> None:
        self._url = url
        self._client: Redis | None = None
        self._disabled = False
        self._lock = asyncio.Lock()

    @property
    def disabled(self) -> bool:
        return self._disabled

    async def get(self) -> Redis | None:
        """Return the client, or ``None`` when Redis is unreachable."""

        if self._disabled:
            logger.debug("Redis connection disabled after previous failure; skipping attempt.")
            return None

        async with self._lock:
            if self._client is not None:
                return self._client
            if self._disabled:
                return None

            client = Redis.from_url(
                self._url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=_REDIS_SOCKET_TIMEOUT_SECONDS,
                socket_timeout=_REDIS_SOCKET_TIMEOUT_SECONDS,
            )
            try:
                await client.ping()
            except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
                logger.warning("Redis connection failed: %s. Live updates will be disabled.", exc)
                self._disabled = True
                await client.aclose()
                return None

            self._client = client
            logger.info("Redis connection established successfully")
            return self._client

    async def close(self) -> None:
        """Close the shared connection and allow a fresh attempt later."""

        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._disabled = False


class RedisPublisher:
    """JSON publishing helpers on top of :class:`RedisProvider`."""

    def __init__(self, provider: RedisProvider) -> None:
        self._provider = provider

    async def publish_json(self, channel: str, message: dict[str, Any]) -> bool:
        redis = await self._provider.get()
        if redis is None:
            return False
        await redis.publish(channel, json.dumps(message, default=str))
        return True

    async def push_json(self, queue_key: str, message: dict[str, Any]) -> bool:
        redis = await self._provider.get()
        if redis is None:
            return False
        await redis.rpush(queue_key, json.dumps(message, default=str))
        return True


__all__ = ["RedisProvider", "RedisPublisher"]
