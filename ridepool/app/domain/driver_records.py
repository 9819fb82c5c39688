"""
Per-driver records (wallet, rating profile).

Both are default-constructed on first access. Callers must already hold
the driver's row lock so two first accesses cannot race to insert.
"""

from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.models.wallet import Wallet
from ridepool.app.models.driver_profile import DriverProfile


async def get_or_create_wallet(db: AsyncSession, driver_id: int) -> Wallet:
    result = await db.execute(
        select(Wallet)
        .where(Wallet.driver_id == driver_id)
        .execution_options(populate_existing=True)
    )
    wallet = result.scalar_one_or_none()
    if wallet is None:
        wallet = Wallet(
            driver_id=driver_id,
            balance=Decimal("0.00"),
            pending_balance=Decimal("0.00"),
            total_earnings=Decimal("0.00"),
        )
        db.add(wallet)
        await db.flush()
    return wallet


async def get_or_create_profile(db: AsyncSession, driver_id: int) -> DriverProfile:
    result = await db.execute(
        select(DriverProfile)
        .where(DriverProfile.driver_id == driver_id)
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        profile = DriverProfile(
            driver_id=driver_id,
            overall_rating=Decimal("0.00"),
            total_ratings=0,
            trips_completed=0,
            badges=[],
            recent_ratings=[],
        )
        db.add(profile)
        await db.flush()
    return profile
