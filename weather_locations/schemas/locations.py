"""Pydantic schemas that power the favorite locations API surface."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    field_validator,
)

from weather_locations.db.models import UserFavoriteLocation


class LocationCreate(BaseModel):
    """Payload for adding a city to the caller's favorites.

    Older clients send camelCase keys and newer ones snake_case; both are
    accepted here so the rest of the service only ever sees one shape.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    city_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("cityName", "city_name"),
        description="City name exactly as the user picked it.",
    )
    country_code: str = Field(
        ...,
        min_length=1,
        max_length=8,
        validation_alias=AliasChoices("countryCode", "country_code"),
        description="Country code of the city, stored upper-cased.",
    )
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    display_order: int | None = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("displayOrder", "display_order"),
        description=(
            "Optional zero-based slot. Omitted by current clients, which get"
            " the next free slot at the end of the list."
        ),
    )

    @field_validator("city_name", mode="before")
    @classmethod
    def _strip_city(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("country_code", mode="before")
    @classmethod
    def _normalize_country(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class FavoriteLocation(BaseModel):
    """Read model for one entry of a user's favorites list."""

    model_config = ConfigDict(from_attributes=True)

    location_id: int = Field(..., description="Shared catalog identifier")
    city_name: str
    country_code: str
    latitude: float
    longitude: float
    display_order: int = Field(..., ge=0)
    created_at: datetime = Field(
        ..., description="When the user added the city to their favorites."
    )

    @classmethod
    def from_row(cls, favorite: UserFavoriteLocation) -> "FavoriteLocation":
        location = favorite.location
        return cls(
            location_id=favorite.location_id,
            city_name=location.name,
            country_code=location.country_code,
            latitude=location.latitude,
            longitude=location.longitude,
            display_order=favorite.display_order,
            created_at=favorite.created_at,
        )


class LocationOrderUpdate(BaseModel):
    """Payload used by the drag-and-drop UI to persist ordering changes."""

    model_config = ConfigDict(populate_by_name=True)

    location_order: list[StrictInt] = Field(
        ...,
        validation_alias=AliasChoices("locationOrder", "location_order"),
        description=(
            "Every favorite location id of the caller, in the desired order."
        ),
    )


class MessageResponse(BaseModel):
    """Acknowledgement returned by mutations without a resource body."""

    message: str


__all__ = [
    "FavoriteLocation",
    "LocationCreate",
    "LocationOrderUpdate",
    "MessageResponse",
]
