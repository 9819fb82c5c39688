"""
Payment endpoints.

Riders confirm transfers for their bookings; the payment provider posts
inbound transfers to the webhook.
"""

import logging
import secrets
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.db.session import get_db
from ridepool.app.core.config import settings
from ridepool.app.core.guards import require_rider
from ridepool.app.domain.payments.payment_service import PaymentService
from ridepool.app.schemas.payment import (
    PaymentConfirmRequest, PaymentConfirmResponse, PaymentWebhookPayload, WebhookAck
)

logger = logging.getLogger("ridepool.payments.api")

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/confirm-transfer", response_model=PaymentConfirmResponse)
async def confirm_transfer(
    req: PaymentConfirmRequest,
    current_user: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm a transfer made to the driver's virtual account.

    The booking is marked PAID and the driver's share credited in one
    transaction; payout and notification follow best-effort.
    """
    result = await PaymentService.confirm_payment(
        db,
        booking_id=req.booking_id,
        payer_id=current_user["user_id"],
        amount=req.amount,
        payment_reference=req.payment_reference,
        narration=req.narration,
    )
    payout = result.payout_transaction
    return {
        "booking": result.booking,
        "transaction_id": result.payment_transaction.id,
        "amount": result.payment_transaction.amount,
        "commission_amount": result.commission_amount,
        "driver_amount": result.driver_amount,
        "payout_status": payout.status if payout is not None else None,
    }


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Provider webhook. Always answers 200; `processed` carries the outcome.
    """
    if settings.payment_webhook_secret:
        supplied = request.headers.get("X-Webhook-Secret", "")
        if not secrets.compare_digest(supplied, settings.payment_webhook_secret):
            logger.warning("Webhook delivery rejected: bad secret")
            return {"processed": False, "error_code": "ERR_AUTH_001", "message": "Invalid webhook secret"}

    try:
        body = await request.json()
        payload = PaymentWebhookPayload.model_validate(body)
    except (ValueError, ValidationError) as e:
        logger.warning("Webhook delivery with malformed payload: %s", e)
        return {"processed": False, "error_code": "ERR_INPUT_001", "message": "Malformed webhook payload"}

    return await PaymentService.handle_payment_webhook(db, payload.model_dump())
