"""
Failure Injection Tests.

Validates resilience against component failures: the payout gateway, the
post-commit side effects, malformed webhook deliveries and store outages.
"""

import time
import pytest
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from ridepool.app.core.config import settings
from ridepool.app.core.exceptions import DependencyFailureError
from ridepool.app.core.reliability import CircuitBreaker, CircuitOpenError, payout_circuit_breaker
from ridepool.app.db.transaction import atomic
from ridepool.app.domain.payments.accounts import VirtualAccountService, BankAccountService
from ridepool.app.domain.payments.bank_gateway import BankTransferGateway
from ridepool.app.domain.payments.payment_service import PaymentService
from ridepool.app.models.dlq import DeadLetterQueue, DLQStatus
from ridepool.app.models.payment_enums import TransactionType
from ridepool.app.models.payment_transaction import PaymentTransaction
from ridepool.app.models.wallet import Wallet


async def _dead_letters(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(DeadLetterQueue).order_by(DeadLetterQueue.id))
        return result.scalars().all()


@pytest.fixture
async def payable_driver(db_session, world):
    """Driver with a virtual account and a verified bank account."""
    account = await VirtualAccountService.get_or_create(db_session, world.driver_id)
    await BankAccountService.upsert(db_session, world.driver_id, "0123456789", "GTBank", "058", "Tunde Driver")
    await BankAccountService.verify(db_session, world.driver_id)
    return account.account_number


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=30)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    assert cb.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_trial():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=30)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Timeout elapsed: one trial call goes through, a failure reopens
    cb.last_failure_time = time.time() - 60
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    cb.last_failure_time = time.time() - 60
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_gateway_failure_keeps_payment_and_dead_letters_payout(db_session, world, payable_driver, session_factory, mocker):
    mocker.patch.object(BankTransferGateway, "transfer", side_effect=ConnectionError("bank unreachable"))

    result = await PaymentService.process_payment_received(db_session, payable_driver, Decimal("1000"), "REF-GW-1")

    assert result.payout_transaction is None
    assert result.driver_amount == Decimal("900.00")

    async with session_factory() as db:
        wallet = await db.scalar(select(Wallet).where(Wallet.driver_id == world.driver_id))
        assert wallet.balance == Decimal("900.00")

        payments = (await db.execute(
            select(PaymentTransaction).where(PaymentTransaction.payment_reference == "REF-GW-1")
        )).scalars().all()
        assert len(payments) == 1

        payouts = (await db.execute(
            select(PaymentTransaction).where(PaymentTransaction.transaction_type == TransactionType.DRIVER_PAYOUT)
        )).scalars().all()
        assert payouts == []

    dead = await _dead_letters(session_factory)
    assert [d.task_name for d in dead] == ["driver_payout"]
    assert dead[0].status == DLQStatus.FAILED
    assert dead[0].error_message.startswith("DependencyFailureError")
    assert dead[0].payload["payment_reference"] == "REF-GW-1"
    assert dead[0].payload["amount"] == "900.00"


@pytest.mark.asyncio
async def test_repeated_gateway_failures_open_the_circuit(db_session, world, payable_driver, mocker):
    transfer = mocker.patch.object(BankTransferGateway, "transfer", side_effect=ConnectionError("bank unreachable"))

    for i in range(settings.payout_failure_threshold + 1):
        await PaymentService.process_payment_received(db_session, payable_driver, Decimal("100"), f"REF-CB-{i}")

    assert payout_circuit_breaker.state == "OPEN"
    assert transfer.await_count == settings.payout_failure_threshold


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_payment(db_session, world, session_factory, mocker):
    account = await VirtualAccountService.get_or_create(db_session, world.driver_id)
    mocker.patch.object(PaymentService, "_notify_payment_received", side_effect=RuntimeError("push service down"))

    result = await PaymentService.process_payment_received(db_session, account.account_number, Decimal("500"), "REF-N-1")

    assert result.payment_transaction.id is not None
    dead = await _dead_letters(session_factory)
    assert [d.task_name for d in dead] == ["payment_notification"]


@pytest.mark.asyncio
async def test_store_failure_is_a_dependency_error(db_session):
    with pytest.raises(DependencyFailureError):
        async with atomic(db_session):
            raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    assert not db_session.in_transaction()


# --- Webhook: always acknowledged ---

@pytest.mark.asyncio
async def test_webhook_acknowledges_everything(client, db_session, world):
    account = await VirtualAccountService.get_or_create(db_session, world.driver_id)
    valid = {"virtual_account_number": account.account_number, "amount": "1500.00", "payment_reference": "WH-1"}

    response = await client.post("/v1/payments/webhook", json=valid)
    assert response.status_code == 200
    assert response.json()["processed"] is True
    assert response.json()["driver_amount"] == "1350.00"

    response = await client.post("/v1/payments/webhook", json=valid)
    assert response.status_code == 200
    assert response.json()["processed"] is False
    assert response.json()["error_code"] == "ERR_PAYMENT_001"

    response = await client.post("/v1/payments/webhook", json={**valid, "virtual_account_number": "SR00000000"})
    assert response.status_code == 200
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.post("/v1/payments/webhook", json={**valid, "amount": "lots", "payment_reference": "WH-2"})
    assert response.status_code == 200
    assert response.json()["error_code"] == "ERR_INPUT_001"

    response = await client.post(
        "/v1/payments/webhook", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 200
    assert response.json()["processed"] is False

    response = await client.post("/v1/payments/webhook", json={**valid, "booking_id": "first"})
    assert response.status_code == 200
    assert response.json()["processed"] is False


@pytest.mark.asyncio
async def test_webhook_secret(client, db_session, world, monkeypatch):
    monkeypatch.setattr(settings, "payment_webhook_secret", "s3cret")
    account = await VirtualAccountService.get_or_create(db_session, world.driver_id)
    payload = {"virtual_account_number": account.account_number, "amount": "100", "payment_reference": "WH-S"}

    response = await client.post("/v1/payments/webhook", json=payload, headers={"X-Webhook-Secret": "guess"})
    assert response.status_code == 200
    assert response.json()["processed"] is False
    assert response.json()["error_code"] == "ERR_AUTH_001"

    response = await client.post("/v1/payments/webhook", json=payload, headers={"X-Webhook-Secret": "s3cret"})
    assert response.json()["processed"] is True
