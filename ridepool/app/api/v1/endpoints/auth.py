"""
Authentication API endpoints.

Tokens are issued by the identity provider; this router only exposes the
caller's own record.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ridepool.app.db.session import get_db
from ridepool.app.models.user import User
from ridepool.app.models.driver_profile import DriverProfile
from ridepool.app.models.enums import UserRole
from ridepool.app.schemas.auth import MeResponse
from ridepool.app.core.dependencies import get_current_user
from ridepool.app.core.exceptions import ResourceNotFoundError

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=MeResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Drivers also get their rating profile, when one exists.
    """
    user_id = current_user.get("user_id")

    user = await db.get(User, user_id)
    if not user:
        raise ResourceNotFoundError("User", user_id)

    profile = None
    if user.role == UserRole.DRIVER:
        result = await db.execute(select(DriverProfile).where(DriverProfile.driver_id == user.id))
        profile = result.scalar_one_or_none()

    return {"user": user, "driver_profile": profile}
