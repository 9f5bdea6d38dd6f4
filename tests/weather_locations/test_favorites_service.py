"""Tests for the request orchestrator and its post-commit side effects."""

from __future__ import annotations

import logging

import pytest

from weather_locations.errors import PayloadValidationError
from weather_locations.services.favorites import (
    EnrichmentTrigger,
    FavoritesBroadcaster,
    FavoritesOrderingEngine,
    SideEffectDispatcher,
)
from weather_locations.services.favorites_service import (
    LOCATION_DELETED_MESSAGE,
    LOCATION_ORDER_UPDATED_MESSAGE,
    FavoriteLocationsService,
)

from tests.weather_locations.support import RecordingPublisher, make_city


@pytest.mark.asyncio
async def test_add_queues_enrichment_only_for_new_locations(
    service: FavoriteLocationsService,
    dispatcher: SideEffectDispatcher,
    publisher: RecordingPublisher,
) -> None:
    created = await service.add_location(user_id="user-1", payload=make_city("Nairobi", "KE"))
    await service.add_location(user_id="user-2", payload=make_city("Nairobi", "KE"))
    await dispatcher.drain()

    assert publisher.pushed == [
        (
            "weather:enrichment:queue",
            {
                "type": "location.created",
                "location_id": created.location_id,
                "name": "Nairobi",
                "country_code": "KE",
                "latitude": 51.5,
                "longitude": -0.12,
            },
        )
    ]


@pytest.mark.asyncio
async def test_mutations_broadcast_fresh_list_to_user_channel(
    service: FavoriteLocationsService,
    dispatcher: SideEffectDispatcher,
    publisher: RecordingPublisher,
) -> None:
    first = await service.add_location(user_id="user-1", payload=make_city("A"))
    second = await service.add_location(user_id="user-1", payload=make_city("B"))
    await dispatcher.drain()
    publisher.published.clear()

    response = await service.reorder_locations(
        user_id="user-1", location_order=[second.location_id, first.location_id]
    )
    await dispatcher.drain()

    assert response.message == LOCATION_ORDER_UPDATED_MESSAGE
    channel, message = publisher.published[-1]
    assert channel == "favorites:user:user-1"
    assert message["type"] == "favorites.updated"
    assert message["user_id"] == "user-1"
    assert [item["city_name"] for item in message["locations"]] == ["B", "A"]
    assert [item["display_order"] for item in message["locations"]] == [0, 1]


@pytest.mark.asyncio
async def test_remove_returns_message_and_skips_broadcast_when_absent(
    service: FavoriteLocationsService,
    dispatcher: SideEffectDispatcher,
    publisher: RecordingPublisher,
) -> None:
    response = await service.remove_location(user_id="user-1", location_id=12345)
    await dispatcher.drain()

    assert response.message == LOCATION_DELETED_MESSAGE
    assert publisher.published == []


@pytest.mark.asyncio
async def test_remove_rejects_non_integer_ids(service: FavoriteLocationsService) -> None:
    with pytest.raises(PayloadValidationError):
        await service.remove_location(user_id="user-1", location_id="abc")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_side_effect_failures_do_not_fail_the_request(
    ordering: FavoritesOrderingEngine,
    dispatcher: SideEffectDispatcher,
    caplog: pytest.LogCaptureFixture,
) -> None:
    broken = RecordingPublisher(fail=True)
    service = FavoriteLocationsService(
        engine=ordering,
        dispatcher=dispatcher,
        broadcaster=FavoritesBroadcaster(broken, channel_prefix="favorites:user"),
        enrichment=EnrichmentTrigger(broken, queue_key="weather:enrichment:queue"),
    )

    with caplog.at_level(logging.ERROR):
        created = await service.add_location(user_id="user-1", payload=make_city("Quito", "EC"))
        await dispatcher.drain()

    assert created.display_order == 0
    assert [f.city_name for f in await service.list_locations(user_id="user-1")] == ["Quito"]
    assert "Side effect" in caplog.text


@pytest.mark.asyncio
async def test_unavailable_redis_skips_side_effects(
    ordering: FavoritesOrderingEngine,
    dispatcher: SideEffectDispatcher,
) -> None:
    offline = RecordingPublisher(available=False)
    service = FavoriteLocationsService(
        engine=ordering,
        dispatcher=dispatcher,
        broadcaster=FavoritesBroadcaster(offline, channel_prefix="favorites:user"),
        enrichment=EnrichmentTrigger(offline, queue_key="weather:enrichment:queue"),
    )

    await service.add_location(user_id="user-1", payload=make_city("Lagos", "NG"))
    await dispatcher.drain()

    assert offline.published == []
    assert offline.pushed == []
    assert dispatcher.pending == 0
