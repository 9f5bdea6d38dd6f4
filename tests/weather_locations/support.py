"""Test doubles and builders shared by the weather locations tests."""

from __future__ import annotations

import time
from typing import Any

import jwt

from weather_locations.schemas.locations import LocationCreate

TEST_JWT_SECRET = "test-secret-with-enough-bytes-for-hs256"


class RecordingPublisher:
    """In-memory stand-in for :class:`weather_locations.messaging.RedisPublisher`."""

    def __init__(self, *, available: bool = True, fail: bool = False) -> None:
        self.available = available
        self.fail = fail
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.pushed: list[tuple[str, dict[str, Any]]] = []

    async def publish_json(self, channel: str, message: dict[str, Any]) -> bool:
        if self.fail:
            raise ConnectionError("redis is down")
        if not self.available:
            return False
        self.published.append((channel, message))
        return True

    async def push_json(self, queue_key: str, message: dict[str, Any]) -> bool:
        if self.fail:
            raise ConnectionError("redis is down")
        if not self.available:
            return False
        self.pushed.append((queue_key, message))
        return True


def make_city(
    name: str,
    country_code: str = "GB",
    *,
    latitude: float = 51.5,
    longitude: float = -0.12,
    display_order: int | None = None,
) -> LocationCreate:
    return LocationCreate(
        city_name=name,
        country_code=country_code,
        latitude=latitude,
        longitude=longitude,
        display_order=display_order,
    )


def mint_token(
    user_id: str | int = "user-1",
    *,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    """Return an HS256 token shaped like the ones the account service issues."""

    now = int(time.time())
    payload = {"userId": user_id, "username": f"{user_id}-name", "iat": now}
    payload["exp"] = now + expires_in
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")
