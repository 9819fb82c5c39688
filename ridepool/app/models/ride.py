"""
Ride database model.

A ride is a driver-announced departure on a route with a fixed seat capacity.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Table, CheckConstraint
from sqlalchemy.sql import func
from ridepool.app.db.session import Base
from ridepool.app.models.ride_enums import RideStatus


ride_pickup_points = Table(
    "ride_pickup_points",
    Base.metadata,
    Column("ride_id", Integer, ForeignKey("rides.id", ondelete="CASCADE"), primary_key=True),
    Column("pickup_point_id", Integer, ForeignKey("pickup_points.id", ondelete="CASCADE"), primary_key=True),
)


class Ride(Base):
    """
    Ride model.

    `available_seats` is a denormalized counter of unreserved capacity,
    maintained incrementally under the ride row lock.
    """
    __tablename__ = "rides"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="ck_ride_available_seats_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="ck_ride_available_seats_capped"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False, index=True)

    departure_time = Column(DateTime(timezone=True), nullable=False, index=True)

    # Seat inventory
    available_seats = Column(Integer, nullable=False)
    total_seats = Column(Integer, nullable=False)

    status = Column(Enum(RideStatus), default=RideStatus.SCHEDULED, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Ride(id={self.id}, seats={self.available_seats}/{self.total_seats}, status='{self.status.value}')>"
