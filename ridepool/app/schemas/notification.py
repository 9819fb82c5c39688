"""
Notification Schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from ridepool.app.models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    related_id: Optional[int]
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime]

    class Config:
        from_attributes = True
