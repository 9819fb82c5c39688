"""
Commission calculation and the platform commission setting.

All money is Decimal with two places, rounded half-up; the commission is
rounded first and the driver gets exactly the remainder, so the two parts
always sum to the amount received.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.core.config import settings
from ridepool.app.core.exceptions import InvalidInputError
from ridepool.app.core.redis_client import get_redis
from ridepool.app.db.transaction import atomic
from ridepool.app.models.company_setting import CompanySetting, SettingKey

logger = logging.getLogger("ridepool.payments")

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")

COMMISSION_CACHE_KEY = "settings:commission_percentage"


def to_money(value) -> Decimal:
    """Coerce to a two-place Decimal, rejecting non-numeric input."""
    if isinstance(value, bool):
        raise InvalidInputError("Amount must be a number", details={"amount": value})
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInputError("Amount must be a number", details={"amount": str(value)})
    if not amount.is_finite():
        raise InvalidInputError("Amount must be a finite number", details={"amount": str(value)})
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionSplit:
    amount: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    driver_amount: Decimal


def calculate_commission(amount, percentage) -> CommissionSplit:
    """
    Split a received amount into platform commission and driver share.

    Example:
        calculate_commission(Decimal("99.99"), Decimal("10"))
        -> commission 10.00, driver 89.99
    """
    amount = to_money(amount)
    pct = Decimal(str(percentage))
    commission = (amount * pct / HUNDRED).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return CommissionSplit(
        amount=amount,
        commission_percentage=pct,
        commission_amount=commission,
        driver_amount=amount - commission,
    )


def _parse_percentage(raw) -> Optional[Decimal]:
    try:
        pct = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not pct.is_finite() or pct < 0 or pct > HUNDRED:
        return None
    return pct


class CommissionSettings:
    """
    Runtime commission percentage.

    Read path: Redis cache (short TTL) -> company_settings row -> configured default.
    Updates write the row and drop the cache key, so the next payment
    reads the new value.
    """

    @staticmethod
    async def get_commission_percentage(db: AsyncSession) -> Decimal:
        cached = await CommissionSettings._cache_get()
        if cached is not None:
            pct = _parse_percentage(cached)
            if pct is not None:
                return pct

        raw = await db.scalar(
            select(CompanySetting.setting_value).where(CompanySetting.setting_key == SettingKey.COMMISSION_PERCENTAGE)
        )
        pct = _parse_percentage(raw) if raw is not None else None
        if pct is None:
            if raw is not None:
                logger.warning("Ignoring malformed commission setting %r, using default", raw)
            pct = Decimal(str(settings.default_commission_percentage))

        await CommissionSettings._cache_set(pct)
        return pct

    @staticmethod
    async def update_commission_percentage(db: AsyncSession, percentage) -> Decimal:
        """
        Persist a new commission percentage.

        Raises:
            InvalidInputError: If the percentage is outside 0..100
        """
        pct = _parse_percentage(percentage) if not isinstance(percentage, bool) else None
        if pct is None:
            raise InvalidInputError(
                "Commission percentage must be between 0 and 100",
                details={"percentage": str(percentage)}
            )
        pct = pct.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        async with atomic(db):
            result = await db.execute(
                select(CompanySetting)
                .where(CompanySetting.setting_key == SettingKey.COMMISSION_PERCENTAGE)
                .with_for_update()
            )
            setting = result.scalar_one_or_none()
            if setting is None:
                db.add(CompanySetting(
                    setting_key=SettingKey.COMMISSION_PERCENTAGE,
                    setting_value=str(pct),
                    description="Platform commission percentage on ride payments",
                ))
            else:
                setting.setting_value = str(pct)

        await CommissionSettings._cache_invalidate()
        logger.info("Commission percentage set to %s%%", pct)
        return pct

    @staticmethod
    async def _cache_get() -> Optional[str]:
        try:
            redis = await get_redis()
            return await redis.get(COMMISSION_CACHE_KEY)
        except (RedisError, OSError) as e:
            logger.warning("Commission cache read failed: %s", e)
            return None

    @staticmethod
    async def _cache_set(pct: Decimal) -> None:
        try:
            redis = await get_redis()
            await redis.set(COMMISSION_CACHE_KEY, str(pct), ex=settings.commission_cache_ttl_seconds)
        except (RedisError, OSError) as e:
            logger.warning("Commission cache write failed: %s", e)

    @staticmethod
    async def _cache_invalidate() -> None:
        try:
            redis = await get_redis()
            await redis.delete(COMMISSION_CACHE_KEY)
        except (RedisError, OSError) as e:
            logger.warning("Commission cache invalidation failed: %s", e)
