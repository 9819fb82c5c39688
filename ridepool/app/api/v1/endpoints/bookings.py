"""
Booking endpoints.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ridepool.app.db.session import get_db
from ridepool.app.core.dependencies import get_current_user
from ridepool.app.core.guards import require_rider
from ridepool.app.domain.bookings.booking_service import BookingService
from ridepool.app.schemas.booking import BookingCreate, BookingResponse, RatingCreate

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    req: BookingCreate,
    current_user: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """
    Book seats on a ride.

    Seats are held immediately; the booking is CONFIRMED with payment
    PENDING until the rider confirms the transfer.
    """
    return await BookingService.create_booking(
        db,
        ride_id=req.ride_id,
        rider_id=current_user["user_id"],
        seat_count=req.seat_count,
        pickup_point_id=req.pickup_point_id,
    )


@router.get("/me", response_model=List[BookingResponse])
async def list_my_bookings(
    current_user: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    return await BookingService.list_rider_bookings(db, current_user["user_id"])


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await BookingService.get_booking_for_user(
        db, booking_id, current_user["user_id"], current_user["role"]
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a booking (rider or the ride's driver). Repeated calls are no-ops."""
    return await BookingService.cancel_booking(
        db, booking_id, current_user["user_id"], current_user["role"]
    )


@router.post("/{booking_id}/rating", response_model=BookingResponse)
async def rate_booking(
    booking_id: int,
    req: RatingCreate,
    current_user: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    return await BookingService.rate_booking(
        db,
        booking_id,
        current_user["user_id"],
        req.rating,
        compliment=req.compliment,
        comment=req.comment,
    )
