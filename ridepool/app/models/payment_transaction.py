"""
Payment transaction database model.

Append-only ledger of payments received, commissions and payouts.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, DateTime, Enum, JSON
from sqlalchemy.sql import func
from ridepool.app.db.session import Base
from ridepool.app.models.payment_enums import TransactionType, TransactionStatus


class PaymentTransaction(Base):
    """
    Payment Transaction model.

    Rows are never updated except for status transitions
    (PENDING -> SUCCESS/FAILED). `payment_reference` is the external
    reference supplied by the payer/provider; its uniqueness is what makes
    payment processing idempotent.
    """
    __tablename__ = "payment_transactions"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Linkage
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    virtual_account_id = Column(Integer, ForeignKey("virtual_accounts.id", ondelete="SET NULL"), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)

    transaction_type = Column(Enum(TransactionType), nullable=False, index=True)

    # Financials
    amount = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), default=0, nullable=False)
    commission_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    driver_amount = Column(Numeric(12, 2), default=0, nullable=False)

    # References
    reference = Column(String(255), unique=True, nullable=False)
    payment_reference = Column(String(255), unique=True, nullable=True)

    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False, index=True)
    description = Column(Text, nullable=True)
    metadata_payload = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<PaymentTransaction(id={self.id}, type='{self.transaction_type.value}', "
            f"amount={self.amount}, status='{self.status.value}')>"
        )
