"""Repository package for database access layer."""

from weather_locations.db.repositories.location_store import LocationStore, StoreGateway

__all__ = ["LocationStore", "StoreGateway"]
