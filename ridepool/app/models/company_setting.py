"""
Company settings database model.

Key/value platform configuration editable at runtime.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from ridepool.app.db.session import Base


class SettingKey:
    """Known setting keys."""
    COMMISSION_PERCENTAGE = "COMMISSION_PERCENTAGE"
    MAIN_ACCOUNT_NUMBER = "MAIN_ACCOUNT_NUMBER"
    MAIN_ACCOUNT_BANK = "MAIN_ACCOUNT_BANK"
    MAIN_ACCOUNT_NAME = "MAIN_ACCOUNT_NAME"


class CompanySetting(Base):
    """Company Setting model."""
    __tablename__ = "company_settings"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    setting_key = Column(String(100), unique=True, nullable=False)
    setting_value = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<CompanySetting(key='{self.setting_key}', value='{self.setting_value}')>"
