"""Shared fixtures for database-backed favorites tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio

from weather_locations.db.connection import (
    DatabaseEngines,
    create_engine,
    create_session_factory,
)
from weather_locations.db.models import Base
from weather_locations.db.repositories.location_store import StoreGateway
from weather_locations.services.favorites import (
    EnrichmentTrigger,
    FavoritesBroadcaster,
    FavoritesOrderingEngine,
    SideEffectDispatcher,
)
from weather_locations.services.favorites_service import FavoriteLocationsService
from weather_locations.settings import AppSettings

from tests.weather_locations.support import TEST_JWT_SECRET, RecordingPublisher


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'locations.db'}"


@pytest_asyncio.fixture
async def engines(database_url: str) -> AsyncIterator[DatabaseEngines]:
    """Provide a throwaway SQLite database with freshly created tables."""

    pytest.importorskip("aiosqlite")
    engine = create_engine(database_url, connect_timeout=5)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    database = DatabaseEngines(primary=engine, replica=engine)
    yield database
    await database.dispose()


@pytest.fixture
def gateway(engines: DatabaseEngines) -> StoreGateway:
    return StoreGateway(
        create_session_factory(engines.primary),
        create_session_factory(engines.replica),
        operation_timeout=5.0,
    )


@pytest.fixture
def ordering(gateway: StoreGateway) -> FavoritesOrderingEngine:
    return FavoritesOrderingEngine(gateway, max_add_attempts=3)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest_asyncio.fixture
async def dispatcher() -> AsyncIterator[SideEffectDispatcher]:
    side_effects = SideEffectDispatcher()
    yield side_effects
    await side_effects.drain(timeout=5)


@pytest.fixture
def service(
    ordering: FavoritesOrderingEngine,
    dispatcher: SideEffectDispatcher,
    publisher: RecordingPublisher,
) -> FavoriteLocationsService:
    return FavoriteLocationsService(
        engine=ordering,
        dispatcher=dispatcher,
        broadcaster=FavoritesBroadcaster(publisher, channel_prefix="favorites:user"),
        enrichment=EnrichmentTrigger(publisher, queue_key="weather:enrichment:queue"),
    )


@pytest.fixture
def settings(database_url: str) -> AppSettings:
    return AppSettings(
        database_url=database_url,
        jwt_secret=TEST_JWT_SECRET,
        allowed_origin="https://weather.example.com",
        redis_url="redis://localhost:6379/15",
    )
