"""
Ride and route schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from ridepool.app.models.ride_enums import RideStatus


class PickupPointResponse(BaseModel):
    id: int
    route_id: int
    name: str
    lat: float
    lng: float

    class Config:
        from_attributes = True


class RouteResponse(BaseModel):
    id: int
    origin: str
    destination: str
    price: Decimal
    distance_km: float
    duration_mins: int

    class Config:
        from_attributes = True


class RideCreate(BaseModel):
    """Schema for publishing a ride. Seat count is validated by the service."""
    route_id: int
    departure_time: datetime
    total_seats: int = 4
    pickup_point_ids: List[int] = Field(default_factory=list)


class RideStatusUpdate(BaseModel):
    status: RideStatus


class RideResponse(BaseModel):
    """Ride with its route, pickup points and driver summary."""
    id: int
    driver_id: int
    driver_name: Optional[str] = None
    car_model: Optional[str] = None
    car_plate: Optional[str] = None
    route: RouteResponse
    departure_time: datetime
    available_seats: int
    total_seats: int
    status: RideStatus
    pickup_points: List[PickupPointResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True
