"""
Booking schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from ridepool.app.models.ride_enums import BookingStatus, PaymentStatus


class BookingCreate(BaseModel):
    """Seat count positivity is checked by the booking service (400, not 422)."""
    ride_id: int
    seat_count: int = 1
    pickup_point_id: Optional[int] = None


class RatingCreate(BaseModel):
    rating: int
    compliment: Optional[str] = Field(default=None, max_length=255)
    comment: Optional[str] = Field(default=None, max_length=2000)


class BookingResponse(BaseModel):
    id: int
    ride_id: int
    rider_id: int
    pickup_point_id: Optional[int]
    seat_count: int
    total_price: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    payment_reference: Optional[str] = None
    amount_paid: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    rating_value: Optional[int] = None
    rating_compliment: Optional[str] = None
    rating_comment: Optional[str] = None
    rated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ExpireUnpaidRequest(BaseModel):
    older_than_minutes: Optional[int] = Field(default=None, ge=0)


class ExpireUnpaidResponse(BaseModel):
    expired: int
