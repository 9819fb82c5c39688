"""
Booking Service.

Booking lifecycle: create (reserving seats), cancel (releasing them),
rate, and the ride-level transitions that cascade onto bookings.

Locks are always taken in the order ride -> booking -> driver (users row)
so concurrent operations on the same ride never deadlock.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.core.config import settings
from ridepool.app.core.exceptions import (
    ResourceNotFoundError, ForbiddenError, InvalidInputError, InvalidStateError
)
from ridepool.app.db.transaction import atomic, lock_one
from ridepool.app.domain.bookings.seat_inventory import reserve, release
from ridepool.app.domain.driver_records import get_or_create_profile
from ridepool.app.models.booking import Booking
from ridepool.app.models.ride import Ride, ride_pickup_points
from ridepool.app.models.route import PickupPoint
from ridepool.app.models.user import User
from ridepool.app.models.enums import UserRole
from ridepool.app.models.notification import NotificationType
from ridepool.app.models.ride_enums import (
    BookingStatus, PaymentStatus, ACTIVE_BOOKING_STATUSES
)
from ridepool.app.services.notification_service import NotificationService

logger = logging.getLogger("ridepool.bookings")

RATING_PLACES = Decimal("0.01")


def _validate_positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"{field} must be a positive integer", details={field: value})
    return value


class BookingService:

    @staticmethod
    async def create_booking(
        db: AsyncSession,
        ride_id: int,
        rider_id: int,
        seat_count: int,
        pickup_point_id: Optional[int] = None
    ) -> Booking:
        """
        Reserve seats on a ride and create a CONFIRMED booking with payment PENDING.

        The seat decrement and the booking insert commit together; two
        riders racing for the last seat cannot both succeed.

        Raises:
            InvalidInputError: seat_count not a positive integer, or pickup point not on the ride
            ResourceNotFoundError: Ride, rider or pickup point missing
            InsufficientSeatsError: Not enough seats left
        """
        _validate_positive_int(seat_count, "seat_count")

        async with atomic(db):
            rider = await db.get(User, rider_id)
            if rider is None:
                raise ResourceNotFoundError("Rider", rider_id)

            ride, route = await reserve(db, ride_id, seat_count)

            if pickup_point_id is not None:
                await BookingService._check_pickup_point(db, ride.id, pickup_point_id)

            booking = Booking(
                ride_id=ride.id,
                rider_id=rider_id,
                pickup_point_id=pickup_point_id,
                seat_count=seat_count,
                total_price=(Decimal(route.price) * seat_count).quantize(RATING_PLACES, ROUND_HALF_UP),
                status=BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.PENDING,
            )
            db.add(booking)
            await db.flush()

            await NotificationService.record(
                db,
                ride.driver_id,
                NotificationType.BOOKING_CONFIRMED,
                "New Booking Confirmed",
                f"{rider.name} booked {seat_count} seat(s) on your {route.origin} to {route.destination} ride.",
                related_id=booking.id,
            )

        logger.info(
            "Booking %s created: ride=%s rider=%s seats=%s remaining=%s",
            booking.id, ride.id, rider_id, seat_count, ride.available_seats
        )
        return booking

    @staticmethod
    async def _check_pickup_point(db: AsyncSession, ride_id: int, pickup_point_id: int) -> None:
        point = await db.get(PickupPoint, pickup_point_id)
        if point is None:
            raise ResourceNotFoundError("Pickup point", pickup_point_id)

        on_ride = await db.scalar(
            select(exists().where(
                ride_pickup_points.c.ride_id == ride_id,
                ride_pickup_points.c.pickup_point_id == pickup_point_id,
            ))
        )
        if not on_ride:
            raise InvalidInputError(
                "Pickup point is not served by this ride",
                details={"ride_id": ride_id, "pickup_point_id": pickup_point_id}
            )

    @staticmethod
    async def cancel_booking(
        db: AsyncSession,
        booking_id: int,
        requester_id: int,
        requester_role: str
    ) -> Booking:
        """
        Cancel a booking and return its seats to the ride.

        Cancelling an already-cancelled booking is a no-op, so seats are
        released exactly once however many times cancel is called.

        Raises:
            ResourceNotFoundError: Booking missing
            ForbiddenError: Requester is neither the rider nor the ride's driver
            InvalidStateError: Booking already COMPLETED or rated
        """
        async with atomic(db):
            ride_id = await db.scalar(select(Booking.ride_id).where(Booking.id == booking_id))
            if ride_id is None:
                raise ResourceNotFoundError("Booking", booking_id)

            ride = await lock_one(db, Ride, ride_id)
            booking = await lock_one(db, Booking, booking_id)

            if booking.status == BookingStatus.CANCELLED:
                return booking

            cancelled_by_driver = requester_id == ride.driver_id
            if requester_id != booking.rider_id and not cancelled_by_driver:
                raise ForbiddenError("You cannot cancel this booking", details={"booking_id": booking_id})

            if booking.status == BookingStatus.COMPLETED:
                raise InvalidStateError("Cannot cancel a completed booking", details={"booking_id": booking_id})

            if booking.is_rated:
                raise InvalidStateError("Cannot cancel a rated booking", details={"booking_id": booking_id})

            booking.status = BookingStatus.CANCELLED
            booking.payment_status = PaymentStatus.REFUNDED
            release(ride, booking.seat_count)

            if cancelled_by_driver:
                recipient_id, actor = booking.rider_id, "The driver"
            else:
                recipient_id, actor = ride.driver_id, "The rider"

            await NotificationService.record(
                db,
                recipient_id,
                NotificationType.BOOKING_CANCELLED,
                "Booking Cancelled",
                f"{actor} cancelled booking #{booking.id} ({booking.seat_count} seat(s)).",
                related_id=booking.id,
            )

        logger.info(
            "Booking %s cancelled by %s %s, ride %s now has %s/%s seats",
            booking.id, requester_role, requester_id, ride.id, ride.available_seats, ride.total_seats
        )
        return booking

    @staticmethod
    async def rate_booking(
        db: AsyncSession,
        booking_id: int,
        rider_id: int,
        rating: int,
        compliment: Optional[str] = None,
        comment: Optional[str] = None
    ) -> Booking:
        """
        Record the rider's rating and fold it into the driver's profile.

        The profile update (running average, count, recent list) happens
        under the driver's row lock, so concurrent ratings for the same
        driver are never lost.

        Raises:
            InvalidInputError: rating not an integer in 1..5
            ResourceNotFoundError: Booking missing
            ForbiddenError: Caller is not the booking's rider
            InvalidStateError: Booking cancelled or already rated
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidInputError("Rating must be an integer between 1 and 5", details={"rating": rating})

        async with atomic(db):
            booking = await lock_one(db, Booking, booking_id)
            if booking is None:
                raise ResourceNotFoundError("Booking", booking_id)

            if booking.rider_id != rider_id:
                raise ForbiddenError("You can only rate your own bookings", details={"booking_id": booking_id})

            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError("Cannot rate a cancelled booking", details={"booking_id": booking_id})

            if booking.is_rated:
                raise InvalidStateError("Booking has already been rated", details={"booking_id": booking_id})

            now = datetime.now(timezone.utc)
            booking.rating_value = rating
            booking.rating_compliment = compliment
            booking.rating_comment = comment
            booking.rated_at = now

            driver_id = await db.scalar(select(Ride.driver_id).where(Ride.id == booking.ride_id))
            await lock_one(db, User, driver_id)
            profile = await get_or_create_profile(db, driver_id)

            previous_total = profile.total_ratings or 0
            previous_average = Decimal(profile.overall_rating or 0)
            new_total = previous_total + 1
            profile.overall_rating = (
                (previous_average * previous_total + rating) / new_total
            ).quantize(RATING_PLACES, ROUND_HALF_UP)
            profile.total_ratings = new_total

            entry = {
                "booking_id": booking.id,
                "rider_id": rider_id,
                "rating": rating,
                "compliment": compliment,
                "comment": comment,
                "created_at": now.isoformat(),
            }
            # Reassign so the JSON column is marked dirty
            profile.recent_ratings = ([entry] + list(profile.recent_ratings or []))[:settings.recent_ratings_cap]

        logger.info("Booking %s rated %s, driver %s average now %s", booking.id, rating, driver_id, profile.overall_rating)
        return booking

    @staticmethod
    async def expire_unpaid_bookings(db: AsyncSession, older_than_minutes: Optional[int] = None) -> int:
        """
        Cancel active bookings whose payment never arrived and free their seats.

        Each booking is expired in its own short transaction under the same
        ride -> booking lock order as a normal cancel.
        Rated bookings are never expired.

        Returns:
            Number of bookings expired
        """
        minutes = settings.unpaid_booking_hold_minutes if older_than_minutes is None else older_than_minutes
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)

        result = await db.execute(
            select(Booking.id, Booking.ride_id).where(
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.payment_status == PaymentStatus.PENDING,
                Booking.created_at < cutoff,
                Booking.rating_value.is_(None),
            ).order_by(Booking.id)
        )
        candidates = result.all()

        expired = 0
        for booking_id, ride_id in candidates:
            async with atomic(db):
                ride = await lock_one(db, Ride, ride_id)
                booking = await lock_one(db, Booking, booking_id)
                if (
                    booking.status not in ACTIVE_BOOKING_STATUSES
                    or booking.payment_status != PaymentStatus.PENDING
                    or booking.is_rated
                ):
                    continue

                booking.status = BookingStatus.CANCELLED
                booking.payment_status = PaymentStatus.FAILED
                release(ride, booking.seat_count)

                await NotificationService.record(
                    db,
                    booking.rider_id,
                    NotificationType.BOOKING_CANCELLED,
                    "Booking Expired",
                    f"Booking #{booking.id} was cancelled because payment was not received in time.",
                    related_id=booking.id,
                )
            expired += 1

        if expired:
            logger.info("Expired %s unpaid booking(s) older than %s minutes", expired, minutes)
        return expired

    @staticmethod
    async def get_booking_for_user(db: AsyncSession, booking_id: int, user_id: int, role: str) -> Booking:
        """Fetch a booking visible to its rider, the ride's driver, or an admin."""
        result = await db.execute(
            select(Booking, Ride.driver_id)
            .join(Ride, Booking.ride_id == Ride.id)
            .where(Booking.id == booking_id)
        )
        row = result.one_or_none()
        if row is None:
            raise ResourceNotFoundError("Booking", booking_id)

        booking, driver_id = row
        if role != UserRole.ADMIN.value and user_id not in (booking.rider_id, driver_id):
            raise ForbiddenError("You cannot view this booking", details={"booking_id": booking_id})
        return booking

    @staticmethod
    async def list_rider_bookings(db: AsyncSession, rider_id: int) -> List[Booking]:
        result = await db.execute(
            select(Booking).where(Booking.rider_id == rider_id).order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_ride_bookings(db: AsyncSession, ride_id: int, driver_id: int) -> List[Booking]:
        """Bookings on one of the driver's rides."""
        ride = await db.get(Ride, ride_id)
        if ride is None:
            raise ResourceNotFoundError("Ride", ride_id)
        if ride.driver_id != driver_id:
            raise ForbiddenError("You can only view bookings on your own rides", details={"ride_id": ride_id})

        result = await db.execute(
            select(Booking).where(Booking.ride_id == ride_id).order_by(Booking.created_at, Booking.id)
        )
        return list(result.scalars().all())

