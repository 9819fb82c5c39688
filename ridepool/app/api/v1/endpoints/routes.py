"""
Route catalogue endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ridepool.app.db.session import get_db
from ridepool.app.core.dependencies import get_current_user
from ridepool.app.domain.bookings.ride_service import RouteService
from ridepool.app.schemas.ride import RouteResponse, PickupPointResponse

router = APIRouter(prefix="/routes", tags=["Routes"])


@router.get("", response_model=List[RouteResponse])
async def list_routes(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await RouteService.list_routes(db)


@router.get("/{route_id}", response_model=RouteResponse)
async def get_route(
    route_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await RouteService.get_route(db, route_id)


@router.get("/{route_id}/pickup-points", response_model=List[PickupPointResponse])
async def list_pickup_points(
    route_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await RouteService.list_pickup_points(db, route_id)
