"""
Booking database model.

A rider's reservation of one or more seats on a ride, with its payment
state and the rider's optional rating of the trip.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from ridepool.app.db.session import Base
from ridepool.app.models.ride_enums import BookingStatus, PaymentStatus


class Booking(Base):
    """
    Booking model.

    seat_count and total_price are fixed at creation; only status,
    payment fields and the rating mutate afterwards.
    """
    __tablename__ = "bookings"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("seat_count > 0", name="ck_booking_seat_count_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False, index=True)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pickup_point_id = Column(Integer, ForeignKey("pickup_points.id", ondelete="SET NULL"), nullable=True)

    seat_count = Column(Integer, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    status = Column(Enum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False, index=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)

    # Payment confirmation
    payment_reference = Column(String(255), nullable=True)
    amount_paid = Column(Numeric(12, 2), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Rating (rider -> driver)
    rating_value = Column(Integer, nullable=True)
    rating_compliment = Column(String(255), nullable=True)
    rating_comment = Column(Text, nullable=True)
    rated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def is_rated(self) -> bool:
        return self.rating_value is not None

    def __repr__(self):
        return f"<Booking(id={self.id}, ride={self.ride_id}, seats={self.seat_count}, status='{self.status.value}')>"
