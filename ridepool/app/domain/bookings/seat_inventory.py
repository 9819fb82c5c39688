"""
Seat inventory primitives.

Keeps 0 <= available_seats <= total_seats for every ride. Both operations
run inside the caller's transaction; `reserve` takes the ride row lock
itself, `release` expects the caller to hold it already.
"""

from typing import Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.models.ride import Ride
from ridepool.app.models.route import Route
from ridepool.app.models.ride_enums import RideStatus
from ridepool.app.core.exceptions import (
    ResourceNotFoundError, InsufficientSeatsError, InvalidStateError
)


async def lock_ride_with_route(db: AsyncSession, ride_id: int) -> Tuple[Ride, Route]:
    """
    Load a ride and its route, locking the ride row (SELECT ... FOR UPDATE OF rides).

    Raises:
        ResourceNotFoundError: If the ride does not exist
    """
    result = await db.execute(
        select(Ride, Route)
        .join(Route, Ride.route_id == Route.id)
        .where(Ride.id == ride_id)
        .with_for_update(of=Ride)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        raise ResourceNotFoundError("Ride", ride_id)
    return row[0], row[1]


async def reserve(db: AsyncSession, ride_id: int, seat_count: int) -> Tuple[Ride, Route]:
    """
    Reserve seats on a ride.

    The decrement is only flushed with the rest of the caller's transaction,
    so the booking insert and the counter change commit or roll back together.

    Returns:
        (ride, route) with the ride still locked

    Raises:
        ResourceNotFoundError: Ride missing
        InvalidStateError: Ride no longer open for booking
        InsufficientSeatsError: Not enough seats (fully booked when zero)
    """
    ride, route = await lock_ride_with_route(db, ride_id)

    if ride.status != RideStatus.SCHEDULED:
        raise InvalidStateError(
            f"Ride is not open for booking, current status: {ride.status.value}",
            details={"ride_id": ride.id}
        )

    if ride.available_seats < seat_count:
        raise InsufficientSeatsError(ride.id, seat_count, ride.available_seats)

    ride.available_seats -= seat_count
    return ride, route


def release(ride: Ride, seat_count: int) -> int:
    """
    Return seats to a locked ride, clamped to total_seats.

    Returns:
        The new available seat count
    """
    ride.available_seats = min(ride.total_seats, ride.available_seats + seat_count)
    return ride.available_seats
