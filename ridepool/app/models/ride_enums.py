"""
Ride and booking enumerations.
"""

import enum


class RideStatus(str, enum.Enum):
    """Ride status enumeration."""
    SCHEDULED = "SCHEDULED"  # Open for bookings
    IN_PROGRESS = "IN_PROGRESS"  # Driver has departed
    COMPLETED = "COMPLETED"  # Ride finished, bookings completed
    CANCELLED = "CANCELLED"  # Cancelled by the driver, bookings cancelled


class BookingStatus(str, enum.Enum):
    """Booking status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"  # Seats reserved
    CANCELLED = "CANCELLED"  # Terminal, seats released
    COMPLETED = "COMPLETED"  # Terminal, ride completed


class PaymentStatus(str, enum.Enum):
    """Booking payment status enumeration."""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Bookings that still hold seats on their ride
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
