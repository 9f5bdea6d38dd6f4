"""Tests for the session-bound store and the transaction gateway."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from weather_locations.db.models import (
    Location,
    UserFavoriteLocation,
    WeatherCacheEntry,
    WeatherForecast,
)
from weather_locations.db.repositories.location_store import LocationStore, StoreGateway
from weather_locations.errors import (
    DisplayOrderConflictError,
    DuplicateLocationError,
    MissingLocationError,
    StorageError,
)


async def _count(gateway: StoreGateway, model: type) -> int:
    async def _work(store: LocationStore) -> int:
        result = await store._session.execute(select(func.count()).select_from(model))
        return int(result.scalar_one())

    return await gateway.run_read_only(_work, primary=True)


@pytest.mark.asyncio
async def test_create_location_duplicate_keeps_transaction_usable(
    gateway: StoreGateway,
) -> None:
    async def _work(store: LocationStore) -> tuple[int, int | None]:
        created = await store.create_location("London", "GB", 51.5, -0.12)
        with pytest.raises(DuplicateLocationError):
            await store.create_location("London", "GB", 51.5, -0.12)
        # Only the savepoint was rolled back; the first row is still visible.
        return created, await store.find_location("London", "GB")

    created, found = await gateway.run_in_transaction(_work)

    assert found == created
    assert await _count(gateway, Location) == 1


@pytest.mark.asyncio
async def test_find_location_matches_name_and_country_exactly(
    gateway: StoreGateway,
) -> None:
    async def _work(store: LocationStore) -> tuple[int | None, int | None]:
        await store.create_location("Paris", "FR", 48.85, 2.35)
        return (
            await store.find_location("Paris", "US"),
            await store.find_location("Paris", "FR"),
        )

    missing, found = await gateway.run_in_transaction(_work)

    assert missing is None
    assert found is not None


@pytest.mark.asyncio
async def test_insert_favorite_conflict_on_display_order(gateway: StoreGateway) -> None:
    async def _work(store: LocationStore) -> int:
        first = await store.create_location("Oslo", "NO", 59.9, 10.75)
        second = await store.create_location("Bergen", "NO", 60.39, 5.32)
        await store.insert_favorite("user-1", first, 0)
        with pytest.raises(DisplayOrderConflictError):
            await store.insert_favorite("user-1", second, 0)
        return await store.count_favorites("user-1")

    assert await gateway.run_in_transaction(_work) == 1


@pytest.mark.asyncio
async def test_insert_favorite_for_deleted_location_reports_missing_row(
    gateway: StoreGateway,
) -> None:
    async def _work(store: LocationStore) -> int:
        location_id = await store.create_location("Tromsø", "NO", 69.65, 18.96)
        await store.delete_location_cascade(location_id)
        with pytest.raises(MissingLocationError) as excinfo:
            await store.insert_favorite("user-1", location_id, 0)
        assert excinfo.value.location_id == location_id
        return await store.count_favorites("user-1")

    assert await gateway.run_in_transaction(_work) == 0


@pytest.mark.asyncio
async def test_max_display_order_is_minus_one_for_empty_list(
    gateway: StoreGateway,
) -> None:
    async def _work(store: LocationStore) -> int:
        return await store.max_display_order("nobody")

    assert await gateway.run_read_only(_work) == -1


@pytest.mark.asyncio
async def test_delete_favorite_reports_whether_a_row_was_removed(
    gateway: StoreGateway,
) -> None:
    async def _work(store: LocationStore) -> tuple[bool, bool]:
        location_id = await store.create_location("Rome", "IT", 41.9, 12.5)
        await store.insert_favorite("user-1", location_id, 0)
        return (
            await store.delete_favorite("user-1", location_id),
            await store.delete_favorite("user-1", location_id),
        )

    assert await gateway.run_in_transaction(_work) == (True, False)


@pytest.mark.asyncio
async def test_delete_location_cascade_purges_weather_rows(
    gateway: StoreGateway,
) -> None:
    async def _seed(store: LocationStore) -> int:
        location_id = await store.create_location("Madrid", "ES", 40.4, -3.7)
        store._session.add_all(
            [
                WeatherForecast(
                    location_id=location_id,
                    forecast_date=datetime(2026, 1, 1, tzinfo=timezone.utc),
                    payload={"temp": 12},
                ),
                WeatherCacheEntry(
                    location_id=location_id,
                    cache_key="current",
                    payload={"temp": 11},
                ),
            ]
        )
        return location_id

    location_id = await gateway.run_in_transaction(_seed)

    async def _purge(store: LocationStore) -> None:
        await store.delete_location_cascade(location_id)

    await gateway.run_in_transaction(_purge)

    assert await _count(gateway, Location) == 0
    assert await _count(gateway, WeatherForecast) == 0
    assert await _count(gateway, WeatherCacheEntry) == 0


@pytest.mark.asyncio
async def test_run_in_transaction_rolls_back_on_domain_error(
    gateway: StoreGateway,
) -> None:
    async def _work(store: LocationStore) -> None:
        await store.create_location("Lisbon", "PT", 38.7, -9.14)
        raise ValueError("boom")

    with pytest.raises(ValueError):
        await gateway.run_in_transaction(_work)

    assert await _count(gateway, Location) == 0


@pytest.mark.asyncio
async def test_run_in_transaction_maps_database_errors(gateway: StoreGateway) -> None:
    async def _work(store: LocationStore) -> None:
        await store.create_location("Dublin", "IE", 53.35, -6.26)
        raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

    with pytest.raises(StorageError) as excinfo:
        await gateway.run_in_transaction(_work)

    assert excinfo.value.retryable is True
    assert await _count(gateway, Location) == 0
    assert await _count(gateway, UserFavoriteLocation) == 0


@pytest.mark.asyncio
async def test_run_in_transaction_enforces_operation_timeout(
    engines,
) -> None:
    from weather_locations.db.connection import create_session_factory

    factory = create_session_factory(engines.primary)
    slow_gateway = StoreGateway(factory, operation_timeout=0.05)

    async def _work(store: LocationStore) -> None:
        await store.create_location("Vienna", "AT", 48.2, 16.37)
        await asyncio.sleep(1)

    with pytest.raises(StorageError, match="timed out"):
        await slow_gateway.run_in_transaction(_work)

    assert await _count(slow_gateway, Location) == 0
