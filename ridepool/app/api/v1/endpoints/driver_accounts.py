"""
Driver money endpoints: virtual account, bank account, wallet, ledger, payouts.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from ridepool.app.db.session import get_db
from ridepool.app.core.guards import require_driver
from ridepool.app.core.exceptions import ResourceNotFoundError
from ridepool.app.domain.payments.accounts import (
    VirtualAccountService, BankAccountService, WalletService
)
from ridepool.app.domain.payments.payment_service import PaymentService
from ridepool.app.models.payment_enums import TransactionType
from ridepool.app.schemas.account import (
    VirtualAccountResponse, BankAccountUpsert, BankAccountResponse, WalletResponse
)
from ridepool.app.schemas.payment import (
    PaymentTransactionResponse, PaymentStatsResponse, PayoutRequest
)

router = APIRouter(prefix="/driver", tags=["Driver - Accounts"])


@router.get("/virtual-account", response_model=VirtualAccountResponse)
async def get_virtual_account(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """The account riders pay into. Issued on first request."""
    return await VirtualAccountService.get_or_create(db, current_user["user_id"])


@router.get("/bank-account", response_model=BankAccountResponse)
async def get_bank_account(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    account = await BankAccountService.get_by_driver(db, current_user["user_id"])
    if account is None:
        raise ResourceNotFoundError("Bank account")
    return account


@router.put("/bank-account", response_model=BankAccountResponse)
async def upsert_bank_account(
    req: BankAccountUpsert,
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Set payout details. Verification is reset until an admin re-verifies."""
    return await BankAccountService.upsert(
        db,
        current_user["user_id"],
        account_number=req.account_number,
        bank_name=req.bank_name,
        bank_code=req.bank_code,
        account_name=req.account_name,
    )


@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    return await WalletService.get_wallet(db, current_user["user_id"])


@router.get("/transactions", response_model=List[PaymentTransactionResponse])
async def list_transactions(
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    return await PaymentService.list_transactions(
        db, current_user["user_id"], transaction_type=transaction_type, limit=limit, offset=offset
    )


@router.get("/payment-stats", response_model=PaymentStatsResponse)
async def get_payment_stats(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    return await PaymentService.get_driver_payment_stats(db, current_user["user_id"])


@router.post("/payout", response_model=PaymentTransactionResponse)
async def request_payout(
    req: PayoutRequest,
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Withdraw from the wallet.

    Returns the DRIVER_PAYOUT transaction: SUCCESS when transferred,
    PENDING when the bank account is missing or unverified.
    """
    return await PaymentService.request_payout(db, current_user["user_id"], req.amount)
