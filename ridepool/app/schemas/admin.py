"""
Admin schemas.
"""

from pydantic import BaseModel
from decimal import Decimal


class CommissionSettingResponse(BaseModel):
    commission_percentage: Decimal


class CommissionSettingUpdate(BaseModel):
    """Range (0..100) is enforced by the settings service."""
    commission_percentage: Decimal
