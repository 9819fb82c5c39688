"""
Driver wallet database model.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime
from sqlalchemy.sql import func
from ridepool.app.db.session import Base


class Wallet(Base):
    """
    Wallet model.

    balance: withdrawable driver earnings not yet paid out
    total_earnings: cumulative gross payments received (never decreases)
    """
    __tablename__ = "wallets"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    balance = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    pending_balance = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total_earnings = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Wallet(driver={self.driver_id}, balance={self.balance}, earnings={self.total_earnings})>"
