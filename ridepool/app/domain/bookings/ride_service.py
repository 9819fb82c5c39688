"""
Ride Service.

Ride publication, discovery, and driver-driven status transitions
(which cascade onto the ride's bookings).
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, insert
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.core.exceptions import (
    ResourceNotFoundError, ForbiddenError, InvalidInputError, InvalidStateError
)
from ridepool.app.db.transaction import atomic, lock_one
from ridepool.app.domain.bookings.seat_inventory import release
from ridepool.app.domain.driver_records import get_or_create_profile
from ridepool.app.models.booking import Booking
from ridepool.app.models.ride import Ride, ride_pickup_points
from ridepool.app.models.route import Route, PickupPoint
from ridepool.app.models.user import User
from ridepool.app.models.enums import UserRole
from ridepool.app.models.notification import NotificationType
from ridepool.app.models.ride_enums import (
    RideStatus, BookingStatus, PaymentStatus, ACTIVE_BOOKING_STATUSES
)
from ridepool.app.services.notification_service import NotificationService

logger = logging.getLogger("ridepool.rides")

# Allowed driver-initiated transitions
RIDE_TRANSITIONS = {
    RideStatus.SCHEDULED: {RideStatus.IN_PROGRESS, RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}


class RideService:

    @staticmethod
    async def create_ride(
        db: AsyncSession,
        driver_id: int,
        route_id: int,
        departure_time: datetime,
        total_seats: int = 4,
        pickup_point_ids: Optional[Sequence[int]] = None
    ) -> Ride:
        """
        Publish a ride with all seats available.

        Raises:
            InvalidInputError: total_seats not positive, or a pickup point belongs to another route
            ResourceNotFoundError: Driver, route or pickup point missing
        """
        if isinstance(total_seats, bool) or not isinstance(total_seats, int) or total_seats <= 0:
            raise InvalidInputError("total_seats must be a positive integer", details={"total_seats": total_seats})

        point_ids = list(dict.fromkeys(pickup_point_ids or []))

        async with atomic(db):
            driver = await db.get(User, driver_id)
            if driver is None or driver.role != UserRole.DRIVER:
                raise ResourceNotFoundError("Driver", driver_id)

            route = await db.get(Route, route_id)
            if route is None:
                raise ResourceNotFoundError("Route", route_id)

            if point_ids:
                result = await db.execute(select(PickupPoint).where(PickupPoint.id.in_(point_ids)))
                points = {p.id: p for p in result.scalars().all()}
                for point_id in point_ids:
                    point = points.get(point_id)
                    if point is None:
                        raise ResourceNotFoundError("Pickup point", point_id)
                    if point.route_id != route.id:
                        raise InvalidInputError(
                            "Pickup point does not belong to the ride's route",
                            details={"pickup_point_id": point_id, "route_id": route.id}
                        )

            ride = Ride(
                driver_id=driver_id,
                route_id=route.id,
                departure_time=departure_time,
                total_seats=total_seats,
                available_seats=total_seats,
                status=RideStatus.SCHEDULED,
            )
            db.add(ride)
            await db.flush()

            if point_ids:
                await db.execute(
                    insert(ride_pickup_points),
                    [{"ride_id": ride.id, "pickup_point_id": point_id} for point_id in point_ids]
                )

        logger.info("Ride %s published by driver %s on route %s with %s seats", ride.id, driver_id, route.id, total_seats)
        return ride

    @staticmethod
    async def update_ride_status(
        db: AsyncSession,
        ride_id: int,
        driver_id: int,
        new_status: RideStatus
    ) -> Ride:
        """
        Move a ride to a new status and cascade onto its active bookings.

        COMPLETED completes every active booking and counts a trip on the
        driver's profile; CANCELLED cancels them (payment REFUNDED) and
        returns their seats. A ride with rated bookings cannot be cancelled.
        Setting the current status again is a no-op.

        Raises:
            ResourceNotFoundError: Ride missing
            ForbiddenError: Caller does not drive this ride
            InvalidStateError: Transition not allowed from the current status,
                or cancelling a ride whose bookings have been rated
        """
        async with atomic(db):
            ride = await lock_one(db, Ride, ride_id)
            if ride is None:
                raise ResourceNotFoundError("Ride", ride_id)

            if ride.driver_id != driver_id:
                raise ForbiddenError("You can only update your own rides", details={"ride_id": ride_id})

            if ride.status == new_status:
                return ride

            if new_status not in RIDE_TRANSITIONS[ride.status]:
                raise InvalidStateError(
                    f"Cannot move ride from {ride.status.value} to {new_status.value}",
                    details={"ride_id": ride_id}
                )

            ride.status = new_status

            if new_status in (RideStatus.COMPLETED, RideStatus.CANCELLED):
                result = await db.execute(
                    select(Booking)
                    .where(Booking.ride_id == ride.id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
                    .order_by(Booking.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                bookings = list(result.scalars().all())

                if new_status == RideStatus.CANCELLED:
                    rated = [b.id for b in bookings if b.is_rated]
                    if rated:
                        raise InvalidStateError(
                            "Cannot cancel a ride with rated bookings",
                            details={"ride_id": ride_id, "booking_ids": rated}
                        )

                for booking in bookings:
                    if new_status == RideStatus.COMPLETED:
                        booking.status = BookingStatus.COMPLETED
                    else:
                        booking.status = BookingStatus.CANCELLED
                        booking.payment_status = PaymentStatus.REFUNDED
                        release(ride, booking.seat_count)

                    await NotificationService.record(
                        db,
                        booking.rider_id,
                        NotificationType.RIDE_UPDATE,
                        "Ride Completed" if new_status == RideStatus.COMPLETED else "Ride Cancelled",
                        f"Your ride #{ride.id} was {new_status.value.lower()} by the driver.",
                        related_id=booking.id,
                    )

                if new_status == RideStatus.CANCELLED:
                    ride.available_seats = ride.total_seats

                if new_status == RideStatus.COMPLETED:
                    await lock_one(db, User, driver_id)
                    profile = await get_or_create_profile(db, driver_id)
                    profile.trips_completed = (profile.trips_completed or 0) + 1

                logger.info("Ride %s %s, %s booking(s) updated", ride.id, new_status.value, len(bookings))

        return ride

    @staticmethod
    async def get_ride(db: AsyncSession, ride_id: int) -> Ride:
        ride = await db.get(Ride, ride_id)
        if ride is None:
            raise ResourceNotFoundError("Ride", ride_id)
        return ride

    @staticmethod
    async def list_available_rides(
        db: AsyncSession,
        origin: Optional[str] = None,
        destination: Optional[str] = None
    ) -> List[Ride]:
        """Scheduled rides with at least one free seat, soonest first."""
        query = (
            select(Ride)
            .join(Route, Ride.route_id == Route.id)
            .where(Ride.status == RideStatus.SCHEDULED, Ride.available_seats > 0)
        )
        if origin:
            query = query.where(Route.origin.ilike(f"%{origin}%"))
        if destination:
            query = query.where(Route.destination.ilike(f"%{destination}%"))

        result = await db.execute(query.order_by(Ride.departure_time, Ride.id))
        return list(result.scalars().all())

    @staticmethod
    async def list_driver_rides(db: AsyncSession, driver_id: int) -> List[Ride]:
        result = await db.execute(
            select(Ride).where(Ride.driver_id == driver_id).order_by(Ride.departure_time.desc(), Ride.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def load_ride_details(db: AsyncSession, rides: Sequence[Ride]) -> List[Dict]:
        """
        Attach route, pickup points and driver summary to rides for API responses.

        Batched: three queries regardless of the number of rides.
        """
        if not rides:
            return []

        ride_ids = [r.id for r in rides]
        route_ids = {r.route_id for r in rides}
        driver_ids = {r.driver_id for r in rides}

        routes = {
            r.id: r for r in (await db.execute(select(Route).where(Route.id.in_(route_ids)))).scalars().all()
        }
        drivers = {
            u.id: u for u in (await db.execute(select(User).where(User.id.in_(driver_ids)))).scalars().all()
        }

        points_by_ride: Dict[int, List[PickupPoint]] = {ride_id: [] for ride_id in ride_ids}
        result = await db.execute(
            select(ride_pickup_points.c.ride_id, PickupPoint)
            .join(PickupPoint, PickupPoint.id == ride_pickup_points.c.pickup_point_id)
            .where(ride_pickup_points.c.ride_id.in_(ride_ids))
            .order_by(PickupPoint.id)
        )
        for ride_id, point in result.all():
            points_by_ride[ride_id].append(point)

        details = []
        for ride in rides:
            driver = drivers.get(ride.driver_id)
            details.append({
                "id": ride.id,
                "driver_id": ride.driver_id,
                "driver_name": driver.name if driver else None,
                "car_model": driver.car_model if driver else None,
                "car_plate": driver.car_plate if driver else None,
                "route": routes.get(ride.route_id),
                "departure_time": ride.departure_time,
                "available_seats": ride.available_seats,
                "total_seats": ride.total_seats,
                "status": ride.status,
                "pickup_points": points_by_ride[ride.id],
                "created_at": ride.created_at,
            })
        return details


class RouteService:

    @staticmethod
    async def list_routes(db: AsyncSession) -> List[Route]:
        result = await db.execute(select(Route).order_by(Route.origin, Route.destination))
        return list(result.scalars().all())

    @staticmethod
    async def get_route(db: AsyncSession, route_id: int) -> Route:
        route = await db.get(Route, route_id)
        if route is None:
            raise ResourceNotFoundError("Route", route_id)
        return route

    @staticmethod
    async def list_pickup_points(db: AsyncSession, route_id: int) -> List[PickupPoint]:
        await RouteService.get_route(db, route_id)
        result = await db.execute(
            select(PickupPoint).where(PickupPoint.route_id == route_id).order_by(PickupPoint.id)
        )
        return list(result.scalars().all())
