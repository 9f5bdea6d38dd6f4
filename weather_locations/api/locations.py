"""FastAPI router exposing the caller's favorite locations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from weather_locations.auth import Principal, get_current_principal
from weather_locations.schemas.locations import (
    FavoriteLocation,
    LocationCreate,
    LocationOrderUpdate,
    MessageResponse,
)
from weather_locations.services.favorites_service import (
    FavoriteLocationsService,
    get_favorites_service,
)

router = APIRouter()


@router.get("/locations", response_model=list[FavoriteLocation])
async def list_locations(
    principal: Principal = Depends(get_current_principal),
    service: FavoriteLocationsService = Depends(get_favorites_service),
) -> list[FavoriteLocation]:
    """Return the caller's favorites sorted by display order."""

    return await service.list_locations(user_id=principal.user_id)


@router.post(
    "/locations",
    response_model=FavoriteLocation,
    status_code=status.HTTP_201_CREATED,
)
async def add_location(
    payload: LocationCreate,
    principal: Principal = Depends(get_current_principal),
    service: FavoriteLocationsService = Depends(get_favorites_service),
) -> FavoriteLocation:
    """Add a city to the caller's favorites, creating the catalog entry if needed."""

    return await service.add_location(user_id=principal.user_id, payload=payload)


@router.put("/locations/order", response_model=MessageResponse)
async def reorder_locations(
    payload: LocationOrderUpdate,
    principal: Principal = Depends(get_current_principal),
    service: FavoriteLocationsService = Depends(get_favorites_service),
) -> MessageResponse:
    return await service.reorder_locations(
        user_id=principal.user_id, location_order=payload.location_order
    )


@router.delete("/locations/{location_id}", response_model=MessageResponse)
async def remove_location(
    location_id: int,
    principal: Principal = Depends(get_current_principal),
    service: FavoriteLocationsService = Depends(get_favorites_service),
) -> MessageResponse:
    """Remove a favorite; removing one that is not present still succeeds."""

    return await service.remove_location(
        user_id=principal.user_id, location_id=location_id
    )


__all__ = ["router"]
