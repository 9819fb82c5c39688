"""
User roles enumeration.

Defines the role types for the ride-pooling marketplace.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        RIDER: Books seats on rides and pays for them
        DRIVER: Announces rides and receives payouts
        ADMIN: Platform operator (settings, bank account verification)
    """
    RIDER = "RIDER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"
