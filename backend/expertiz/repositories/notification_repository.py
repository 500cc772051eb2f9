"""Notification repository backed by SQLAlchemy."""
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.models.notification import Notification, NotificationType


class NotificationRepository:
    """Data access layer for `notifications`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, notification: Notification) -> Notification:
        # Savepoint: a failed insert must not poison the caller's transaction.
        async with self.db.begin_nested():
            self.db.add(notification)
            await self.db.flush()
        return notification

    async def add_many(self, notifications: list[Notification]) -> int:
        async with self.db.begin_nested():
            self.db.add_all(notifications)
            await self.db.flush()
        return len(notifications)

    async def get(self, notification_id: int) -> Notification | None:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: int,
        page: int,
        limit: int,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
    ) -> tuple[list[Notification], int]:
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read == False)  # noqa: E712
        if notification_type is not None:
            conditions.append(Notification.type == notification_type)

        total_result = await self.db.execute(
            select(func.count()).select_from(Notification).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def count_unread(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        )
        return result.scalar() or 0

    async def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete(self, notification: Notification) -> None:
        await self.db.delete(notification)
        await self.db.flush()
