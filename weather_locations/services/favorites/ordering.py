"""Ordering rules for a user's favorite locations.

The engine keeps every user's ``display_order`` values dense and zero-based:
after any committed add, remove or reorder the orders are exactly
``0..N-1``.  Each mutation runs as one transaction through
:class:`StoreGateway`, so a failure half-way leaves the previous ordering in
place.

Orders are protected by a (user, display_order) unique constraint.  When
several rows move at once they are first parked on negative slots and then
written to their final values, so no single UPDATE collides with a row that
is about to move away.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from weather_locations.db.repositories.location_store import LocationStore, StoreGateway
from weather_locations.errors import (
    DisplayOrderConflictError,
    DuplicateLocationError,
    FavoriteExistsError,
    MissingLocationError,
    OrderConflictError,
    PayloadValidationError,
)
from weather_locations.schemas.locations import FavoriteLocation, LocationCreate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddResult:
    favorite: FavoriteLocation
    location_created: bool


@dataclass(frozen=True)
class RemoveResult:
    removed: bool
    location_deleted: bool


class FavoritesOrderingEngine:
    """List, add, remove and reorder favorites while keeping orders dense."""

    def __init__(self, gateway: StoreGateway, *, max_add_attempts: int = 3) -> None:
        if max_add_attempts < 1:
            raise ValueError("max_add_attempts must be at least 1")
        self._gateway = gateway
        self._max_add_attempts = max_add_attempts

    async def list_favorites(
        self, user_id: str, *, primary: bool = False
    ) -> list[FavoriteLocation]:
        """Return the favorites in display order.

        Served by the read replica unless ``primary`` is set, in which case a
        write that just committed is guaranteed to be visible.
        """

        async def _work(store: LocationStore) -> list[FavoriteLocation]:
            rows = await store.list_favorites(user_id)
            return [FavoriteLocation.from_row(row) for row in rows]

        return await self._gateway.run_read_only(_work, primary=primary)

    async def add_favorite(self, user_id: str, city: LocationCreate) -> AddResult:
        async def _work(store: LocationStore) -> AddResult:
            return await self._add(store, user_id, city)

        return await self._gateway.run_in_transaction(_work)

    async def remove_favorite(self, user_id: str, location_id: int) -> RemoveResult:
        async def _work(store: LocationStore) -> RemoveResult:
            return await self._remove(store, user_id, location_id)

        return await self._gateway.run_in_transaction(_work)

    async def reorder_favorites(
        self, user_id: str, location_ids: Sequence[int]
    ) -> list[FavoriteLocation]:
        if isinstance(location_ids, (str, bytes)) or not isinstance(
            location_ids, Sequence
        ):
            raise PayloadValidationError(
                "Location order must be an array of location IDs"
            )
        requested = list(location_ids)

        async def _work(store: LocationStore) -> list[FavoriteLocation]:
            return await self._reorder(store, user_id, requested)

        return await self._gateway.run_in_transaction(_work)

    async def _add(
        self, store: LocationStore, user_id: str, city: LocationCreate
    ) -> AddResult:
        location_id, created = await self._resolve_location(store, city)

        for attempt in range(1, self._max_add_attempts + 1):
            if await store.get_favorite(user_id, location_id) is not None:
                raise FavoriteExistsError(user_id, location_id)

            if city.display_order is None:
                order = await store.max_display_order(user_id) + 1
            else:
                order = await self._open_slot(store, user_id, city.display_order)

            try:
                await store.insert_favorite(user_id, location_id, order)
            except MissingLocationError:
                logger.info(
                    "Location %s was removed concurrently; resolving %s/%s again (attempt %s/%s)",
                    location_id,
                    city.city_name,
                    city.country_code,
                    attempt,
                    self._max_add_attempts,
                )
                location_id, created = await self._resolve_location(store, city)
                continue
            except DisplayOrderConflictError:
                logger.info(
                    "Display order %s for user %s was claimed concurrently (attempt %s/%s)",
                    order,
                    user_id,
                    attempt,
                    self._max_add_attempts,
                )
                continue

            favorite = await store.get_favorite(user_id, location_id)
            if favorite is None:  # pragma: no cover - inserted in this transaction
                raise RuntimeError("Inserted favorite could not be read back")
            return AddResult(
                favorite=FavoriteLocation.from_row(favorite),
                location_created=created,
            )

        raise OrderConflictError(user_id, self._max_add_attempts)

    async def _resolve_location(
        self, store: LocationStore, city: LocationCreate
    ) -> tuple[int, bool]:
        """Reuse the catalog row for (name, country) or create it."""

        existing = await store.find_location(city.city_name, city.country_code)
        if existing is not None:
            return existing, False

        try:
            location_id = await store.create_location(
                city.city_name,
                city.country_code,
                city.latitude,
                city.longitude,
            )
        except DuplicateLocationError:
            raced = await store.find_location(city.city_name, city.country_code)
            if raced is None:
                raise
            logger.debug(
                "Location %s/%s was created concurrently; reusing it",
                city.city_name,
                city.country_code,
            )
            return raced, False
        return location_id, True

    async def _open_slot(
        self, store: LocationStore, user_id: str, requested: int
    ) -> int:
        """Free ``requested`` (clamped to the list length) by shifting later rows."""

        count = await store.count_favorites(user_id)
        position = min(requested, count)
        if position == count:
            return position

        rows = await store.list_favorites(user_id)
        current = {row.location_id: row.display_order for row in rows}
        desired = {
            row.location_id: index if index < position else index + 1
            for index, row in enumerate(rows)
        }
        await self._apply_orders(store, user_id, current, desired)
        return position

    async def _remove(
        self, store: LocationStore, user_id: str, location_id: int
    ) -> RemoveResult:
        removed = await store.delete_favorite(user_id, location_id)
        if not removed:
            logger.debug(
                "Favorite %s for user %s did not exist; nothing to remove",
                location_id,
                user_id,
            )
            return RemoveResult(removed=False, location_deleted=False)

        await self._compact(store, user_id)

        location_deleted = False
        if await store.count_favorite_references(location_id) == 0:
            await store.delete_location_cascade(location_id)
            location_deleted = True
            logger.info("Deleted unreferenced location %s", location_id)

        return RemoveResult(removed=True, location_deleted=location_deleted)

    async def _compact(self, store: LocationStore, user_id: str) -> None:
        """Renumber the remaining favorites ``0..N-1`` in their current order."""

        rows = await store.list_favorites(user_id)
        current = {row.location_id: row.display_order for row in rows}
        desired = {row.location_id: index for index, row in enumerate(rows)}
        await self._apply_orders(store, user_id, current, desired)

    async def _reorder(
        self, store: LocationStore, user_id: str, requested: list[int]
    ) -> list[FavoriteLocation]:
        rows = await store.list_favorites(user_id)
        current = {row.location_id: row.display_order for row in rows}

        if len(set(requested)) != len(requested):
            raise PayloadValidationError("Location order contains duplicate ids")
        if set(requested) != set(current):
            missing = sorted(set(current) - set(requested))
            unknown = sorted(set(requested) - set(current))
            raise PayloadValidationError(
                "Location order must list every favorite exactly once"
                f" (missing: {missing}, unknown: {unknown})"
            )

        desired = {location_id: index for index, location_id in enumerate(requested)}
        await self._apply_orders(store, user_id, current, desired)

        reordered = await store.list_favorites(user_id)
        return [FavoriteLocation.from_row(row) for row in reordered]

    async def _apply_orders(
        self,
        store: LocationStore,
        user_id: str,
        current: Mapping[int, int],
        desired: Mapping[int, int],
    ) -> None:
        changed = {
            location_id: order
            for location_id, order in desired.items()
            if current.get(location_id) != order
        }
        if not changed:
            return

        if len(changed) > 1:
            for index, location_id in enumerate(changed):
                await store.set_display_order(user_id, location_id, -(index + 1))

        for location_id, order in changed.items():
            await store.set_display_order(user_id, location_id, order)


__all__ = ["AddResult", "FavoritesOrderingEngine", "RemoveResult"]
