"""
Ride endpoints.

Drivers publish rides and move them through their lifecycle; riders
browse available rides.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ridepool.app.db.session import get_db
from ridepool.app.core.dependencies import get_current_user
from ridepool.app.core.guards import require_driver
from ridepool.app.domain.bookings.booking_service import BookingService
from ridepool.app.domain.bookings.ride_service import RideService
from ridepool.app.schemas.ride import RideCreate, RideResponse, RideStatusUpdate
from ridepool.app.schemas.booking import BookingResponse

router = APIRouter(prefix="/rides", tags=["Rides"])


@router.post("", response_model=RideResponse, status_code=status.HTTP_201_CREATED)
async def create_ride(
    req: RideCreate,
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Publish a ride on a route."""
    ride = await RideService.create_ride(
        db,
        driver_id=current_user["user_id"],
        route_id=req.route_id,
        departure_time=req.departure_time,
        total_seats=req.total_seats,
        pickup_point_ids=req.pickup_point_ids,
    )
    details = await RideService.load_ride_details(db, [ride])
    return details[0]


@router.get("/available", response_model=List[RideResponse])
async def list_available_rides(
    origin: Optional[str] = Query(None, alias="from"),
    destination: Optional[str] = Query(None, alias="to"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Scheduled rides with free seats, optionally filtered by origin/destination."""
    rides = await RideService.list_available_rides(db, origin=origin, destination=destination)
    return await RideService.load_ride_details(db, rides)


@router.get("/driver/me", response_model=List[RideResponse])
async def list_my_rides(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    rides = await RideService.list_driver_rides(db, current_user["user_id"])
    return await RideService.load_ride_details(db, rides)


@router.get("/{ride_id}", response_model=RideResponse)
async def get_ride(
    ride_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    ride = await RideService.get_ride(db, ride_id)
    details = await RideService.load_ride_details(db, [ride])
    return details[0]


@router.get("/{ride_id}/bookings", response_model=List[BookingResponse])
async def list_ride_bookings(
    ride_id: int,
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Bookings on one of the caller's rides."""
    return await BookingService.list_ride_bookings(db, ride_id, current_user["user_id"])


@router.patch("/{ride_id}/status", response_model=RideResponse)
async def update_ride_status(
    ride_id: int,
    req: RideStatusUpdate,
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Start, complete or cancel a ride.

    Completing or cancelling cascades onto the ride's active bookings.
    """
    ride = await RideService.update_ride_status(db, ride_id, current_user["user_id"], req.status)
    details = await RideService.load_ride_details(db, [ride])
    return details[0]
