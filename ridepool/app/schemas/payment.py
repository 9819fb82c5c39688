"""
Payment, ledger and payout schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, Union
from ridepool.app.models.payment_enums import TransactionType, TransactionStatus
from ridepool.app.schemas.booking import BookingResponse


class PaymentConfirmRequest(BaseModel):
    """Rider confirms a bank transfer for a booking."""
    booking_id: int
    amount: Decimal
    payment_reference: str = Field(..., min_length=1, max_length=255)
    narration: Optional[str] = Field(default=None, max_length=500)


class PaymentWebhookPayload(BaseModel):
    """
    Inbound payment notification from the provider.

    Every field is optional; the payment service validates them so a
    malformed delivery is still acknowledged.
    """
    virtual_account_number: Optional[str] = None
    amount: Optional[Union[Decimal, str]] = None
    payment_reference: Optional[str] = None
    booking_id: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class PaymentTransactionResponse(BaseModel):
    id: int
    driver_id: int
    booking_id: Optional[int]
    transaction_type: TransactionType
    amount: Decimal
    commission_amount: Decimal
    commission_percentage: Decimal
    driver_amount: Decimal
    reference: str
    payment_reference: Optional[str]
    status: TransactionStatus
    description: Optional[str]
    metadata_payload: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentConfirmResponse(BaseModel):
    booking: BookingResponse
    transaction_id: int
    amount: Decimal
    commission_amount: Decimal
    driver_amount: Decimal
    payout_status: Optional[TransactionStatus] = None


class WebhookAck(BaseModel):
    processed: bool
    payment_reference: Optional[str] = None
    transaction_id: Optional[int] = None
    driver_amount: Optional[str] = None
    commission_amount: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


class PayoutRequest(BaseModel):
    amount: Decimal


class PaymentStatsResponse(BaseModel):
    total_received: Decimal
    total_commission: Decimal
    total_driver_earnings: Decimal
    total_paid_out: Decimal
    pending_payouts: Decimal
    payments_count: int
    payouts_count: int
    transaction_count: int
    wallet_balance: Decimal
