"""
Payment Service.

Applies rider payments to driver virtual accounts, splits commission,
credits the driver's wallet and triggers payouts.

Idempotency: every inbound payment carries an external reference. It is
checked under the driver's row lock and is also unique in the ledger, so
a replayed or concurrent duplicate is rejected and the wallet is credited
exactly once.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.core.exceptions import (
    AppException, ResourceNotFoundError, ForbiddenError, InvalidInputError,
    InvalidStateError, DuplicatePaymentError, DependencyFailureError
)
from ridepool.app.core.reliability import payout_circuit_breaker, CircuitOpenError
from ridepool.app.db.transaction import atomic, lock_one
from ridepool.app.domain.driver_records import get_or_create_wallet
from ridepool.app.domain.payments.accounts import VirtualAccountService, BankAccountService
from ridepool.app.domain.payments.bank_gateway import BankTransferGateway
from ridepool.app.domain.payments.commission import CommissionSettings, calculate_commission, to_money
from ridepool.app.models.booking import Booking
from ridepool.app.models.notification import NotificationType
from ridepool.app.models.payment_enums import TransactionType, TransactionStatus, PayoutPendingReason
from ridepool.app.models.payment_transaction import PaymentTransaction
from ridepool.app.models.ride import Ride
from ridepool.app.models.ride_enums import BookingStatus, PaymentStatus
from ridepool.app.models.user import User
from ridepool.app.models.wallet import Wallet
from ridepool.app.services.notification_service import NotificationService
from ridepool.app.services.side_effects import PostCommitQueue

logger = logging.getLogger("ridepool.payments")

ZERO = Decimal("0.00")

PAYER_NAME_KEYS = ("payer_name", "payerName", "customer_name", "customerName", "user_name", "userName", "full_name", "fullName")


def generate_reference(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"


def payer_name_from(metadata: Optional[Dict[str, Any]]) -> str:
    for key in PAYER_NAME_KEYS:
        value = (metadata or {}).get(key)
        if value:
            return str(value)
    return "A rider"


@dataclass
class PaymentResult:
    """Outcome of an applied payment; payout is None when the payout step failed."""
    payment_transaction: PaymentTransaction
    commission_transaction: PaymentTransaction
    commission_amount: Decimal
    driver_amount: Decimal
    booking: Optional[Booking] = None
    payout_transaction: Optional[PaymentTransaction] = None


class PaymentService:

    @staticmethod
    async def process_payment_received(
        db: AsyncSession,
        virtual_account_number: str,
        amount,
        payment_reference: str,
        booking_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> PaymentResult:
        """
        Apply an inbound payment to a driver's virtual account.

        Ledger rows (PAYMENT_RECEIVED + COMMISSION_DEDUCTED), the wallet
        credit and the booking's PAID mark commit together. Payout and the
        driver notification run after commit and cannot undo the payment.

        Raises:
            InvalidInputError: Non-positive amount or missing reference
            ResourceNotFoundError: Unknown virtual account
            InvalidStateError: Virtual account inactive
            DuplicatePaymentError: Reference already processed
        """
        amount = PaymentService._validate_amount(amount)
        if not payment_reference:
            raise InvalidInputError("payment_reference is required")

        async with atomic(db):
            booking = None
            if booking_id is not None:
                booking = await lock_one(db, Booking, booking_id)
                if booking is None:
                    logger.warning("Payment %s names unknown booking %s, recording without link", payment_reference, booking_id)

            result = await PaymentService._apply_payment(
                db, virtual_account_number, amount, payment_reference,
                booking.id if booking is not None else None, metadata
            )

            if booking is not None:
                ride_driver_id = await db.scalar(select(Ride.driver_id).where(Ride.id == booking.ride_id))
                if (
                    ride_driver_id == result.payment_transaction.driver_id
                    and booking.payment_status == PaymentStatus.PENDING
                    and booking.status != BookingStatus.CANCELLED
                ):
                    PaymentService._mark_paid(booking, payment_reference, amount)
                    result.booking = booking
                else:
                    logger.warning(
                        "Payment %s not applied to booking %s (status=%s, payment_status=%s)",
                        payment_reference, booking.id, booking.status.value, booking.payment_status.value
                    )

        await PaymentService._after_payment(db, result, metadata)
        return result

    @staticmethod
    async def confirm_payment(
        db: AsyncSession,
        booking_id: int,
        payer_id: int,
        amount,
        payment_reference: str,
        narration: Optional[str] = None
    ) -> PaymentResult:
        """
        Rider confirms a transfer for their booking.

        Seats were reserved when the booking was created, so no seat check
        happens here; the booking just moves to PAID.

        Raises:
            InvalidInputError: Non-positive amount, amount below the booking total, or missing reference
            ResourceNotFoundError: Booking missing
            ForbiddenError: Payer is not the booking's rider
            InvalidStateError: Booking already paid or cancelled
            DuplicatePaymentError: Reference already processed
        """
        amount = PaymentService._validate_amount(amount)
        if not payment_reference:
            raise InvalidInputError("payment_reference is required")

        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise ResourceNotFoundError("Booking", booking_id)
        if booking.rider_id != payer_id:
            raise ForbiddenError("You can only pay for your own bookings", details={"booking_id": booking_id})

        driver_id = await db.scalar(select(Ride.driver_id).where(Ride.id == booking.ride_id))
        virtual_account = await VirtualAccountService.get_or_create(db, driver_id)
        account_number = virtual_account.account_number

        payer = await db.get(User, payer_id)
        metadata = {
            "payer_name": payer.name if payer else None,
            "payer_id": payer_id,
            "narration": narration,
            "source": "rider_confirmation",
        }

        async with atomic(db):
            booking = await lock_one(db, Booking, booking_id)

            if booking.payment_status == PaymentStatus.PAID:
                raise InvalidStateError("Payment already confirmed for this booking", details={"booking_id": booking_id})
            if booking.status == BookingStatus.CANCELLED:
                raise InvalidStateError("Cannot pay for a cancelled booking", details={"booking_id": booking_id})
            if amount < Decimal(booking.total_price):
                raise InvalidInputError(
                    "Amount is less than the booking total",
                    details={"amount": str(amount), "total_price": str(booking.total_price)}
                )

            result = await PaymentService._apply_payment(
                db, account_number, amount, payment_reference, booking.id, metadata
            )
            PaymentService._mark_paid(booking, payment_reference, amount)
            result.booking = booking

        await PaymentService._after_payment(db, result, metadata)
        return result

    @staticmethod
    async def handle_payment_webhook(db: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Provider webhook entry point.

        Never raises: the provider always gets an acknowledgement, with
        `processed` telling whether the payment was applied.
        """
        reference = payload.get("payment_reference")
        try:
            result = await PaymentService.process_payment_received(
                db,
                virtual_account_number=payload.get("virtual_account_number"),
                amount=payload.get("amount"),
                payment_reference=reference,
                booking_id=payload.get("booking_id"),
                metadata=payload.get("metadata"),
            )
        except AppException as e:
            logger.warning("Webhook payment %s not processed: %s", reference, e.message)
            return {"processed": False, "payment_reference": reference, "error_code": e.error_code, "message": e.message}
        except Exception:
            logger.exception("Webhook payment %s failed", reference)
            return {"processed": False, "payment_reference": reference, "error_code": "ERR_INTERNAL_SERVER", "message": "Payment processing failed"}

        return {
            "processed": True,
            "payment_reference": reference,
            "transaction_id": result.payment_transaction.id,
            "driver_amount": str(result.driver_amount),
            "commission_amount": str(result.commission_amount),
        }

    @staticmethod
    async def process_driver_payout(
        db: AsyncSession,
        driver_id: int,
        amount,
        metadata: Optional[Dict[str, Any]] = None,
        require_balance: bool = False
    ) -> PaymentTransaction:
        """
        Pay `amount` out to the driver's bank account.

        Without a verified bank account the payout is recorded PENDING and
        no money moves. Otherwise the transfer goes through the gateway and
        the wallet balance is debited (floored at zero).
        A sent transfer also closes the driver's earlier PENDING payout
        records: the wallet balance already carries that money.

        Raises:
            ResourceNotFoundError: Driver missing
            InvalidStateError: require_balance and the wallet holds less than `amount`
            DependencyFailureError: Transfer gateway unavailable
        """
        amount = to_money(amount)
        metadata = dict(metadata or {})

        async with atomic(db):
            driver = await lock_one(db, User, driver_id)
            if driver is None:
                raise ResourceNotFoundError("Driver", driver_id)

            wallet = await get_or_create_wallet(db, driver_id)
            if require_balance and Decimal(wallet.balance) < amount:
                raise InvalidStateError(
                    "Insufficient wallet balance",
                    details={"balance": str(wallet.balance), "requested": str(amount)}
                )

            bank_account = await BankAccountService.get_by_driver(db, driver_id)
            if bank_account is None or not bank_account.is_verified:
                reason = (
                    PayoutPendingReason.BANK_ACCOUNT_NOT_SETUP if bank_account is None
                    else PayoutPendingReason.BANK_ACCOUNT_NOT_VERIFIED
                )
                payout = PaymentTransaction(
                    driver_id=driver_id,
                    booking_id=metadata.get("booking_id"),
                    transaction_type=TransactionType.DRIVER_PAYOUT,
                    amount=amount,
                    commission_amount=ZERO,
                    commission_percentage=ZERO,
                    driver_amount=amount,
                    reference=generate_reference("PEND"),
                    status=TransactionStatus.PENDING,
                    description="Payout pending: bank account " + (
                        "not set up" if bank_account is None else "not verified"
                    ),
                    metadata_payload={**metadata, "reason": reason.value},
                )
                db.add(payout)
                await db.flush()
                logger.info("Payout of %s for driver %s left pending: %s", amount, driver_id, reason.value)
                return payout

            narration = f"Payout to {bank_account.account_name} ({bank_account.account_number})"
            try:
                transfer_reference = await payout_circuit_breaker.call(
                    BankTransferGateway.transfer, bank_account, amount, narration
                )
            except (CircuitOpenError, OSError) as e:
                logger.error("Payout transfer for driver %s failed: %s", driver_id, e)
                raise DependencyFailureError("Payout gateway unavailable") from e

            payout = PaymentTransaction(
                driver_id=driver_id,
                booking_id=metadata.get("booking_id"),
                transaction_type=TransactionType.DRIVER_PAYOUT,
                amount=amount,
                commission_amount=ZERO,
                commission_percentage=ZERO,
                driver_amount=amount,
                reference=transfer_reference,
                status=TransactionStatus.SUCCESS,
                description=narration,
                metadata_payload={
                    **metadata,
                    "bank_name": bank_account.bank_name,
                    "bank_code": bank_account.bank_code,
                },
            )
            db.add(payout)
            wallet.balance = max(ZERO, Decimal(wallet.balance) - amount)
            await PaymentService._settle_pending_payouts(db, driver_id, transfer_reference)
            await db.flush()

        logger.info("Payout %s of %s sent to driver %s", payout.reference, amount, driver_id)
        return payout

    @staticmethod
    async def request_payout(db: AsyncSession, driver_id: int, amount) -> PaymentTransaction:
        """Driver-initiated withdrawal from the wallet balance."""
        amount = PaymentService._validate_amount(amount)
        return await PaymentService.process_driver_payout(
            db,
            driver_id,
            amount,
            metadata={"source": "driver_request", "requested_at": datetime.now(timezone.utc).isoformat()},
            require_balance=True,
        )

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        driver_id: int,
        transaction_type: Optional[TransactionType] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[PaymentTransaction]:
        query = select(PaymentTransaction).where(PaymentTransaction.driver_id == driver_id)
        if transaction_type is not None:
            query = query.where(PaymentTransaction.transaction_type == transaction_type)
        query = query.order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc()).offset(offset).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_driver_payment_stats(db: AsyncSession, driver_id: int) -> Dict[str, Any]:
        """Aggregate ledger totals for a driver."""
        result = await db.execute(
            select(
                PaymentTransaction.transaction_type,
                PaymentTransaction.status,
                func.coalesce(func.sum(PaymentTransaction.amount), 0),
                func.coalesce(func.sum(PaymentTransaction.driver_amount), 0),
                func.coalesce(func.sum(PaymentTransaction.commission_amount), 0),
                func.count(PaymentTransaction.id),
            )
            .where(PaymentTransaction.driver_id == driver_id)
            .group_by(PaymentTransaction.transaction_type, PaymentTransaction.status)
        )

        stats = {
            "total_received": ZERO,
            "total_commission": ZERO,
            "total_driver_earnings": ZERO,
            "total_paid_out": ZERO,
            "pending_payouts": ZERO,
            "payments_count": 0,
            "payouts_count": 0,
            "transaction_count": 0,
        }
        for tx_type, status, amount_sum, driver_sum, commission_sum, count in result.all():
            amount_sum, driver_sum, commission_sum = to_money(amount_sum), to_money(driver_sum), to_money(commission_sum)
            if status == TransactionStatus.SUCCESS:
                stats["transaction_count"] += count
            if tx_type == TransactionType.PAYMENT_RECEIVED and status == TransactionStatus.SUCCESS:
                stats["total_received"] += amount_sum
                stats["total_commission"] += commission_sum
                stats["total_driver_earnings"] += driver_sum
                stats["payments_count"] += count
            elif tx_type == TransactionType.DRIVER_PAYOUT and status == TransactionStatus.SUCCESS:
                stats["total_paid_out"] += amount_sum
                stats["payouts_count"] += count
            elif tx_type == TransactionType.DRIVER_PAYOUT and status == TransactionStatus.PENDING:
                stats["pending_payouts"] += amount_sum

        balance = await db.scalar(select(Wallet.balance).where(Wallet.driver_id == driver_id))
        stats["wallet_balance"] = to_money(balance) if balance is not None else ZERO
        return stats

    @staticmethod
    async def _settle_pending_payouts(db: AsyncSession, driver_id: int, settled_by: str) -> int:
        """Close out PENDING payout records once a transfer reaches the driver's bank."""
        result = await db.execute(
            select(PaymentTransaction).where(
                PaymentTransaction.driver_id == driver_id,
                PaymentTransaction.transaction_type == TransactionType.DRIVER_PAYOUT,
                PaymentTransaction.status == TransactionStatus.PENDING,
            )
        )
        pending = list(result.scalars().all())
        for record in pending:
            record.status = TransactionStatus.FAILED
            record.metadata_payload = {**(record.metadata_payload or {}), "settled_by": settled_by}
        if pending:
            logger.info("Closed %s pending payout record(s) for driver %s via %s", len(pending), driver_id, settled_by)
        return len(pending)

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidInputError("Amount must be greater than zero", details={"amount": str(amount)})
        return amount

    @staticmethod
    def _mark_paid(booking: Booking, payment_reference: str, amount: Decimal) -> None:
        booking.payment_status = PaymentStatus.PAID
        booking.payment_reference = payment_reference
        booking.amount_paid = amount
        booking.paid_at = datetime.now(timezone.utc)

    @staticmethod
    async def _apply_payment(
        db: AsyncSession,
        virtual_account_number: str,
        amount: Decimal,
        payment_reference: str,
        booking_id: Optional[int],
        metadata: Optional[Dict[str, Any]]
    ) -> PaymentResult:
        """Ledger + wallet part of a payment. Runs inside the caller's transaction."""
        virtual_account = await VirtualAccountService.get_by_account_number(db, virtual_account_number or "")
        if virtual_account is None:
            raise ResourceNotFoundError("Virtual account")
        if not virtual_account.is_active:
            raise InvalidStateError("Virtual account is inactive", details={"account_number": virtual_account_number})

        driver_id = virtual_account.driver_id
        # Serializes all money movements for this driver
        await lock_one(db, User, driver_id)

        already_applied = await db.scalar(
            select(PaymentTransaction.id).where(PaymentTransaction.payment_reference == payment_reference)
        )
        if already_applied is not None:
            raise DuplicatePaymentError(payment_reference)

        pct = await CommissionSettings.get_commission_percentage(db)
        split = calculate_commission(amount, pct)
        ledger_metadata = {**(metadata or {}), "virtual_account_number": virtual_account.account_number}

        payment = PaymentTransaction(
            driver_id=driver_id,
            virtual_account_id=virtual_account.id,
            booking_id=booking_id,
            transaction_type=TransactionType.PAYMENT_RECEIVED,
            amount=split.amount,
            commission_amount=split.commission_amount,
            commission_percentage=split.commission_percentage,
            driver_amount=split.driver_amount,
            reference=generate_reference("PAY"),
            payment_reference=payment_reference,
            status=TransactionStatus.SUCCESS,
            description=f"Payment received from {payer_name_from(metadata)}",
            metadata_payload=ledger_metadata,
        )
        db.add(payment)
        try:
            await db.flush()
        except IntegrityError as e:
            raise DuplicatePaymentError(payment_reference) from e

        commission = PaymentTransaction(
            driver_id=driver_id,
            virtual_account_id=virtual_account.id,
            booking_id=booking_id,
            transaction_type=TransactionType.COMMISSION_DEDUCTED,
            amount=split.commission_amount,
            commission_amount=split.commission_amount,
            commission_percentage=split.commission_percentage,
            driver_amount=ZERO,
            reference=generate_reference("COMM"),
            status=TransactionStatus.SUCCESS,
            description=f"Platform commission ({split.commission_percentage}%)",
            metadata_payload={"original_payment_id": payment.id},
        )
        db.add(commission)

        wallet = await get_or_create_wallet(db, driver_id)
        wallet.balance = Decimal(wallet.balance) + split.driver_amount
        wallet.total_earnings = Decimal(wallet.total_earnings) + split.amount
        await db.flush()

        logger.info(
            "Payment %s applied: amount=%s commission=%s driver=%s driver_id=%s",
            payment_reference, split.amount, split.commission_amount, split.driver_amount, driver_id
        )
        return PaymentResult(
            payment_transaction=payment,
            commission_transaction=commission,
            commission_amount=split.commission_amount,
            driver_amount=split.driver_amount,
        )

    @staticmethod
    async def _after_payment(db: AsyncSession, result: PaymentResult, metadata: Optional[Dict[str, Any]]) -> None:
        payment = result.payment_transaction
        payload = {
            "driver_id": payment.driver_id,
            "amount": str(result.driver_amount),
            "payment_transaction_id": payment.id,
            "payment_reference": payment.payment_reference,
            "booking_id": payment.booking_id,
        }

        queue = PostCommitQueue()
        if result.driver_amount > ZERO:
            queue.enqueue(
                "driver_payout",
                PaymentService.process_driver_payout,
                payment.driver_id,
                result.driver_amount,
                {"source": "payment", "payment_transaction_id": payment.id, "booking_id": payment.booking_id},
                payload=payload,
            )
        queue.enqueue(
            "payment_notification",
            PaymentService._notify_payment_received,
            payment.driver_id,
            payment.amount,
            payment.payment_reference,
            payment.booking_id,
            payer_name_from(metadata),
            payload=payload,
        )
        results = await queue.drain(db)
        result.payout_transaction = results.get("driver_payout")

    @staticmethod
    async def _notify_payment_received(
        db: AsyncSession,
        driver_id: int,
        amount: Decimal,
        payment_reference: str,
        booking_id: Optional[int],
        payer_name: str
    ) -> None:
        async with atomic(db):
            await NotificationService.record(
                db,
                driver_id,
                NotificationType.PAYMENT_RECEIVED,
                "Transfer confirmed",
                f"{payer_name} paid ₦{Decimal(amount):,.2f} (ref {payment_reference}).",
                related_id=booking_id,
            )
