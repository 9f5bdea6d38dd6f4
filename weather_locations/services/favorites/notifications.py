"""Post-commit side effects of favorites mutations.

Nothing here may influence the outcome of a request: the dispatcher runs each
effect as its own task after the transaction committed, logs failures and
moves on.  Retrying is left to the downstream consumers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from weather_locations.messaging import RedisPublisher
from weather_locations.schemas.locations import FavoriteLocation

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Schedule fire-and-forget coroutines and keep them from being collected."""

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(
        self, name: str, effect: Callable[[], Awaitable[None]]
    ) -> asyncio.Task[None]:
        """Start ``effect`` in the background; errors are logged, never raised."""

        task = asyncio.create_task(self._run(name, effect), name=f"side-effect:{name}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for scheduled effects, e.g. during shutdown or in tests."""

        if not self._pending:
            return
        done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            logger.warning("Cancelling side effect %s still running at shutdown", task.get_name())
            task.cancel()

    async def _run(self, name: str, effect: Callable[[], Awaitable[None]]) -> None:
        try:
            await effect()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Side effect %s failed; the request already succeeded", name)


class FavoritesBroadcaster:
    """Push a user's current favorites to their other live sessions."""

    def __init__(self, publisher: RedisPublisher, *, channel_prefix: str) -> None:
        self._publisher = publisher
        self._channel_prefix = channel_prefix

    def channel_for(self, user_id: str) -> str:
        return f"{self._channel_prefix}:{user_id}"

    async def broadcast(
        self, user_id: str, favorites: Sequence[FavoriteLocation]
    ) -> None:
        message = {
            "type": "favorites.updated",
            "user_id": user_id,
            "locations": [favorite.model_dump(mode="json") for favorite in favorites],
        }
        delivered = await self._publisher.publish_json(self.channel_for(user_id), message)
        if not delivered:
            logger.debug("Skipped favorites broadcast for user %s; Redis unavailable", user_id)


class EnrichmentTrigger:
    """Queue a weather fetch for a location that entered the catalog."""

    def __init__(self, publisher: RedisPublisher, *, queue_key: str) -> None:
        self._publisher = publisher
        self._queue_key = queue_key

    async def trigger(self, favorite: FavoriteLocation) -> None:
        job = {
            "type": "location.created",
            "location_id": favorite.location_id,
            "name": favorite.city_name,
            "country_code": favorite.country_code,
            "latitude": favorite.latitude,
            "longitude": favorite.longitude,
        }
        delivered = await self._publisher.push_json(self._queue_key, job)
        if delivered:
            logger.info("Queued weather enrichment for location %s", favorite.location_id)
        else:
            logger.warning(
                "Weather enrichment for location %s not queued; Redis unavailable",
                favorite.location_id,
            )


__all__ = ["EnrichmentTrigger", "FavoritesBroadcaster", "SideEffectDispatcher"]
