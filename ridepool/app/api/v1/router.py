"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ridepool.app.api.v1.endpoints import (
    auth, admin, routes, rides, bookings, payments, driver_accounts, notifications
)

router = APIRouter()

# Identity
router.include_router(auth.router)

# Catalogue and rides
router.include_router(routes.router)
router.include_router(rides.router)

# Booking lifecycle
router.include_router(bookings.router)

# Payments and driver money
router.include_router(payments.router)
router.include_router(driver_accounts.router)

# Notifications
router.include_router(notifications.router)

# Platform operator
router.include_router(admin.router)
