"""SQLAlchemy ORM models for the shared location catalog and user favorites.

A :class:`Location` row is shared by every user that favorites the same city,
while :class:`UserFavoriteLocation` is the per-user join row that carries the
ordering.  Weather rows hang off the catalog entry and disappear with it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def utcnow():
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


class Location(Base):
    """Deduplicated city entry referenced by any number of favorites."""

    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint(
            "name",
            "country_code",
            name="uq_locations_name_country",
        ),
    )

    location_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    country_code: Mapped[str] = mapped_column(String(8), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    favorites: Mapped[list["UserFavoriteLocation"]] = relationship(
        "UserFavoriteLocation",
        back_populates="location",
        passive_deletes=True,
    )


class UserFavoriteLocation(Base):
    """Ordering row linking a user to a catalog location."""

    __tablename__ = "user_favorite_locations"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "display_order",
            name="uq_user_favorite_locations_user_order",
        ),
        Index(
            "ix_user_favorite_locations_user_order_created",
            "user_id",
            "display_order",
            "created_at",
        ),
    )

    user_id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
        doc=(
            "Identifier taken from the verified bearer token. Stored as a"
            " string so numeric and opaque subject identifiers both fit."
        ),
    )
    location_id: Mapped[int] = mapped_column(
        ForeignKey("locations.location_id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    display_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        doc=(
            "Zero-based rank within the user's favorites. Kept dense after"
            " every committed mutation; the unique constraint rejects two"
            " rows claiming the same slot."
        ),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    location: Mapped[Location] = relationship(
        "Location", back_populates="favorites"
    )


class WeatherForecast(Base):
    """Forecast snapshot fetched for a catalog location."""

    __tablename__ = "weather_forecasts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        ForeignKey("locations.location_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    forecast_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, server_default="{}"
    )
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )


class WeatherCacheEntry(Base):
    """Cached provider response keyed by location."""

    __tablename__ = "weather_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[int] = mapped_column(
        ForeignKey("locations.location_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cache_key: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, server_default="{}"
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# Tables that must be purged before a catalog location is deleted.
DEPENDENT_WEATHER_MODELS: tuple[type[Base], ...] = (WeatherForecast, WeatherCacheEntry)

__all__ = [
    "Base",
    "DEPENDENT_WEATHER_MODELS",
    "Location",
    "UserFavoriteLocation",
    "WeatherCacheEntry",
    "WeatherForecast",
    "utcnow",
]
