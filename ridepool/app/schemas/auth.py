"""
Authentication Pydantic schemas.

Identity is issued elsewhere; only the caller's own record is exposed.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from ridepool.app.models.enums import UserRole


class UserResponse(BaseModel):
    """
    Schema for user information response.

    Used by GET /auth/me endpoint.
    """
    id: int
    email: str
    name: str
    phone: Optional[str]
    role: UserRole
    is_active: bool
    car_model: Optional[str] = None
    car_plate: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DriverProfileResponse(BaseModel):
    overall_rating: float
    total_ratings: int
    trips_completed: int
    badges: list
    recent_ratings: list
    join_date: datetime

    class Config:
        from_attributes = True


class MeResponse(BaseModel):
    user: UserResponse
    driver_profile: Optional[DriverProfileResponse] = None
