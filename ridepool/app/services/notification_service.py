"""
Notification Service.

In-app notification sink. Recording is best-effort: a failure to store a
notification is logged and never aborts the operation that triggered it.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, update
from datetime import datetime, timezone
from typing import Optional, List

from ridepool.app.models.notification import Notification, NotificationType

logger = logging.getLogger("ridepool.notifications")


class NotificationService:

    @staticmethod
    async def record(
        db: AsyncSession,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[int] = None
    ) -> Optional[Notification]:
        """
        Store a notification inside a savepoint of the caller's transaction.

        Returns:
            The notification, or None if it could not be stored
        """
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            related_id=related_id,
            is_read=False,
        )
        try:
            async with db.begin_nested():
                db.add(notif)
        except SQLAlchemyError:
            logger.exception("Failed to record %s notification for user %s", type.value, user_id)
            return None
        return notif

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0
    ) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read. Caller commits."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        """Mark all notifications for user as read. Caller commits."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).values(
            is_read=True,
            read_at=datetime.now(timezone.utc)
        )
        result = await db.execute(stmt)
        return result.rowcount
