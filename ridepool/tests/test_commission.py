"""
Commission split and commission setting tests.
"""

import pytest
from decimal import Decimal
from redis.exceptions import ConnectionError as RedisConnectionError

from ridepool.app.core.exceptions import InvalidInputError
from ridepool.app.domain.payments import commission as commission_module
from ridepool.app.domain.payments.commission import (
    CommissionSettings, calculate_commission, to_money, COMMISSION_CACHE_KEY
)


@pytest.mark.parametrize(
    "amount, pct, commission, driver",
    [
        ("1000.00", "10", "100.00", "900.00"),
        ("99.99", "10", "10.00", "89.99"),
        ("2500.00", "12.5", "312.50", "2187.50"),
        ("0.05", "10", "0.01", "0.04"),
        ("1234.56", "0", "0.00", "1234.56"),
        ("1234.56", "100", "1234.56", "0.00"),
    ],
)
def test_commission_split_is_exact(amount, pct, commission, driver):
    split = calculate_commission(Decimal(amount), Decimal(pct))

    assert split.commission_amount == Decimal(commission)
    assert split.driver_amount == Decimal(driver)
    assert split.commission_amount + split.driver_amount == Decimal(amount)


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(2500) == Decimal("2500.00")
    with pytest.raises(InvalidInputError):
        to_money("ten naira")
    with pytest.raises(InvalidInputError):
        to_money("NaN")


@pytest.mark.asyncio
async def test_default_percentage_when_unset(db_session, mock_redis):
    pct = await CommissionSettings.get_commission_percentage(db_session)

    assert pct == Decimal("10.0")
    assert mock_redis.store[COMMISSION_CACHE_KEY] == "10.0"


@pytest.mark.asyncio
async def test_update_invalidates_cache(db_session, mock_redis):
    await CommissionSettings.get_commission_percentage(db_session)
    assert COMMISSION_CACHE_KEY in mock_redis.store

    updated = await CommissionSettings.update_commission_percentage(db_session, Decimal("15"))
    assert updated == Decimal("15.00")
    assert COMMISSION_CACHE_KEY not in mock_redis.store

    assert await CommissionSettings.get_commission_percentage(db_session) == Decimal("15.00")

    # Second update goes through the existing row
    await CommissionSettings.update_commission_percentage(db_session, "7.5")
    assert await CommissionSettings.get_commission_percentage(db_session) == Decimal("7.50")


@pytest.mark.asyncio
@pytest.mark.parametrize("value", ["-1", "100.01", "abc", True])
async def test_update_rejects_out_of_range(db_session, value):
    with pytest.raises(InvalidInputError):
        await CommissionSettings.update_commission_percentage(db_session, value)


@pytest.mark.asyncio
async def test_redis_outage_falls_back_to_store(db_session, mocker):
    await CommissionSettings.update_commission_percentage(db_session, "12")

    broken = mocker.AsyncMock()
    broken.get.side_effect = RedisConnectionError("redis down")
    broken.set.side_effect = RedisConnectionError("redis down")
    mocker.patch.object(commission_module, "get_redis", mocker.AsyncMock(return_value=broken))

    assert await CommissionSettings.get_commission_percentage(db_session) == Decimal("12.00")
