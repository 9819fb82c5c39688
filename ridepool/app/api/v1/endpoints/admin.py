"""
Admin endpoints.

Platform-operator actions: commission setting, bank-account verification,
virtual-account deactivation and unpaid-booking expiry.
"""

from fastapi import APIRouter, Depends
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.db.session import get_db
from ridepool.app.core.guards import require_admin
from ridepool.app.domain.bookings.booking_service import BookingService
from ridepool.app.domain.payments.accounts import BankAccountService, VirtualAccountService
from ridepool.app.domain.payments.commission import CommissionSettings
from ridepool.app.schemas.account import BankAccountResponse, VirtualAccountResponse
from ridepool.app.schemas.admin import CommissionSettingResponse, CommissionSettingUpdate
from ridepool.app.schemas.booking import ExpireUnpaidRequest, ExpireUnpaidResponse

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/settings/commission", response_model=CommissionSettingResponse)
async def get_commission(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    pct = await CommissionSettings.get_commission_percentage(db)
    return {"commission_percentage": pct}


@router.put("/settings/commission", response_model=CommissionSettingResponse)
async def update_commission(
    req: CommissionSettingUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Applies to payments processed after the update."""
    pct = await CommissionSettings.update_commission_percentage(db, req.commission_percentage)
    return {"commission_percentage": pct}


@router.post("/bank-accounts/{driver_id}/verify", response_model=BankAccountResponse)
async def verify_bank_account(
    driver_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await BankAccountService.verify(db, driver_id)


@router.post("/virtual-accounts/{driver_id}/deactivate", response_model=VirtualAccountResponse)
async def deactivate_virtual_account(
    driver_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await VirtualAccountService.deactivate(db, driver_id)


@router.post("/bookings/expire-unpaid", response_model=ExpireUnpaidResponse)
async def expire_unpaid_bookings(
    req: Optional[ExpireUnpaidRequest] = None,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Release seats held by bookings whose payment never arrived."""
    older_than = req.older_than_minutes if req is not None else None
    expired = await BookingService.expire_unpaid_bookings(db, older_than)
    return {"expired": expired}
