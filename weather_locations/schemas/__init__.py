"""Pydantic schemas for API requests and responses."""

from weather_locations.schemas.error import (  # noqa: F401
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from weather_locations.schemas.locations import (  # noqa: F401
    FavoriteLocation,
    LocationCreate,
    LocationOrderUpdate,
    MessageResponse,
)
