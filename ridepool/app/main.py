"""
FastAPI Application Entry Point.

This is the main application file for the RidePool Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from ridepool.app.core.config import settings
from ridepool.app.api.v1.router import router as api_v1_router
from ridepool.app.core.observability import ObservabilityMiddleware, CorrelationIdFilter
from ridepool.app.core.redis_client import ping_redis
from ridepool.app.db.session import engine, Base
from ridepool.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from ridepool.app.models.user import User
from ridepool.app.models.route import Route, PickupPoint
from ridepool.app.models.ride import Ride
from ridepool.app.models.booking import Booking
from ridepool.app.models.virtual_account import VirtualAccount
from ridepool.app.models.bank_account import BankAccount
from ridepool.app.models.payment_transaction import PaymentTransaction
from ridepool.app.models.wallet import Wallet
from ridepool.app.models.driver_profile import DriverProfile
from ridepool.app.models.company_setting import CompanySetting
from ridepool.app.models.notification import Notification
from ridepool.app.models.dlq import DeadLetterQueue

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(CorrelationIdFilter())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Disposes the engine's pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ride-pooling marketplace backend: rides, seat bookings, payments and driver payouts",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to RidePool Backend API",
        "docs": "/docs",
        "health": "/health",
    }
