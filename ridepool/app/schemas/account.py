"""
Driver account schemas (virtual account, bank account, wallet).
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal


class VirtualAccountResponse(BaseModel):
    id: int
    driver_id: int
    account_number: str
    bank_name: str
    bank_code: str
    account_name: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class BankAccountUpsert(BaseModel):
    account_number: str = Field(..., min_length=1, max_length=50)
    bank_name: str = Field(..., min_length=1, max_length=100)
    bank_code: str = Field(..., min_length=1, max_length=10)
    account_name: str = Field(..., min_length=1, max_length=255)


class BankAccountResponse(BaseModel):
    id: int
    driver_id: int
    account_number: str
    bank_name: str
    bank_code: str
    account_name: str
    is_verified: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class WalletResponse(BaseModel):
    driver_id: int
    balance: Decimal
    pending_balance: Decimal
    total_earnings: Decimal
    updated_at: datetime

    class Config:
        from_attributes = True
