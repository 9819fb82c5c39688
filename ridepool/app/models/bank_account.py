"""
Bank account database model.

The driver's real payout destination.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from ridepool.app.db.session import Base


class BankAccount(Base):
    """
    Bank Account model.

    Payouts are only transferred once `is_verified` is set; any change to
    the account details clears it again.
    """
    __tablename__ = "bank_accounts"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    account_number = Column(String(50), nullable=False)
    bank_name = Column(String(100), nullable=False)
    bank_code = Column(String(10), nullable=False)
    account_name = Column(String(255), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<BankAccount(id={self.id}, driver={self.driver_id}, verified={self.is_verified})>"
