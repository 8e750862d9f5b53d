from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update

from supplychain_api.db.base import utcnow
from supplychain_api.db.models.notifications import Notification, NotificationType
from .base import BaseRepository


class NotificationRepository(BaseRepository):
    """
    Repository for notifications.

    Every read or write other than creation filters on both the notification id
    and the owning user id, so a caller can never observe another user's rows.
    """

    async def create(
        self,
        *,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any],
        created_by: Optional[UUID] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data,
            read=False,
            created_by=created_by,
        )
        await self.add(notification)
        await self.commit()
        return notification

    async def create_many(self, rows: Iterable[dict[str, Any]]) -> List[Notification]:
        notifications = [Notification(read=False, **row) for row in rows]
        await self.add_all(notifications)
        await self.commit()
        return notifications

    async def count_unread(self, user_id: UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.read.is_(False)
        )
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def list_for_user(
        self,
        user_id: UUID,
        *,
        type: Optional[NotificationType] = None,
        read: Optional[bool] = None,
        before: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if type is not None:
            stmt = stmt.where(Notification.type == type)
        if read is not None:
            stmt = stmt.where(Notification.read.is_(read))
        if before is not None:
            stmt = stmt.where(Notification.created_at < before)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await self.scalars(stmt)
        return list(result)

    async def get_for_user(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        stmt = select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
        return await self.scalar_one_or_none(stmt)

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        """Flip read to true for the caller's notification. Idempotent."""
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(read=True, updated_at=utcnow())
            .returning(Notification)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        notification = result.scalar_one_or_none()
        await self.commit()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, updated_at=utcnow())
            .returning(Notification.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        count = len(result.scalars().all())
        await self.commit()
        return count

    async def delete_for_user(self, notification_id: UUID, user_id: UUID) -> bool:
        stmt = (
            delete(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .returning(Notification.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.execute(stmt)
        deleted = result.scalar_one_or_none()
        await self.commit()
        return deleted is not None
