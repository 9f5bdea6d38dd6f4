"""Business logic powering the favorite locations endpoints.

Ordering and persistence are delegated to :class:`FavoritesOrderingEngine`:
* ``list_favorites`` – replica read for the list endpoint.
* ``add_favorite`` – catalog reuse-or-create plus next-slot assignment.
* ``remove_favorite`` – delete, compaction and catalog garbage collection.
* ``reorder_favorites`` – permutation check and bulk renumbering.

Side effects handled through :class:`SideEffectDispatcher` once the engine's
transaction has committed:
* ``EnrichmentTrigger.trigger`` – only when an add created a catalog row.
* ``FavoritesBroadcaster.broadcast`` – after add, remove and reorder, with the
  list re-read from the primary database.

A failing side effect is logged by the dispatcher and never changes the
response the caller receives.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from fastapi import Request

from weather_locations.errors import PayloadValidationError
from weather_locations.schemas.locations import (
    FavoriteLocation,
    LocationCreate,
    MessageResponse,
)
from weather_locations.services.favorites import (
    EnrichmentTrigger,
    FavoritesBroadcaster,
    FavoritesOrderingEngine,
    SideEffectDispatcher,
)

logger = logging.getLogger(__name__)

LOCATION_DELETED_MESSAGE = "Location deleted successfully"
LOCATION_ORDER_UPDATED_MESSAGE = "Location order updated successfully"


class FavoriteLocationsService:
    """Orchestrates the ordering engine and its post-commit side effects."""

    def __init__(
        self,
        *,
        engine: FavoritesOrderingEngine,
        dispatcher: SideEffectDispatcher,
        broadcaster: FavoritesBroadcaster,
        enrichment: EnrichmentTrigger,
    ) -> None:
        self._engine = engine
        self._dispatcher = dispatcher
        self._broadcaster = broadcaster
        self._enrichment = enrichment

    async def list_locations(self, *, user_id: str) -> list[FavoriteLocation]:
        return await self._engine.list_favorites(user_id)

    async def add_location(
        self, *, user_id: str, payload: LocationCreate
    ) -> FavoriteLocation:
        logger.info(
            "Adding %s/%s to favorites of user %s",
            payload.city_name,
            payload.country_code,
            user_id,
        )
        result = await self._engine.add_favorite(user_id, payload)

        if result.location_created:
            favorite = result.favorite
            self._dispatcher.dispatch(
                f"enrichment:{favorite.location_id}",
                lambda: self._enrichment.trigger(favorite),
            )
        self._schedule_broadcast(user_id)
        return result.favorite

    async def remove_location(
        self, *, user_id: str, location_id: int
    ) -> MessageResponse:
        if isinstance(location_id, bool) or not isinstance(location_id, int):
            raise PayloadValidationError("Location id must be an integer")

        result = await self._engine.remove_favorite(user_id, location_id)
        if result.removed:
            self._schedule_broadcast(user_id)
        return MessageResponse(message=LOCATION_DELETED_MESSAGE)

    async def reorder_locations(
        self, *, user_id: str, location_order: Sequence[int]
    ) -> MessageResponse:
        await self._engine.reorder_favorites(user_id, location_order)
        self._schedule_broadcast(user_id)
        return MessageResponse(message=LOCATION_ORDER_UPDATED_MESSAGE)

    def _schedule_broadcast(self, user_id: str) -> None:
        async def _broadcast() -> None:
            favorites = await self._engine.list_favorites(user_id, primary=True)
            await self._broadcaster.broadcast(user_id, favorites)

        self._dispatcher.dispatch(f"broadcast:{user_id}", _broadcast)


def get_favorites_service(request: Request) -> FavoriteLocationsService:
    """FastAPI dependency returning the service wired in ``create_app``."""

    return request.app.state.favorites_service


__all__ = [
    "FavoriteLocationsService",
    "LOCATION_DELETED_MESSAGE",
    "LOCATION_ORDER_UPDATED_MESSAGE",
    "get_favorites_service",
]
