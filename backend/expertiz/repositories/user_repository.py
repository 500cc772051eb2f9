"""User repository backed by SQLAlchemy."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.models.user import User


class UserRepository:
    """Data access layer for `users`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def list_active_ids(self) -> list[int]:
        result = await self.db.execute(
            select(User.id).where(User.is_active == True).order_by(User.id)  # noqa: E712
        )
        return list(result.scalars().all())
