"""Payment repository backed by SQLAlchemy."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.models.payment import Payment


class PaymentRepository:
    """Data access layer for `payments`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        await self.db.flush()
        await self.db.refresh(payment)
        return payment

    async def get(self, payment_id: int) -> Payment | None:
        result = await self.db.execute(select(Payment).where(Payment.id == payment_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, payment_id: int) -> Payment | None:
        """Lock the payment so concurrent webhook deliveries settle it once."""
        result = await self.db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save(self, payment: Payment) -> Payment:
        await self.db.flush()
        return payment

    async def list_for_user(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[Payment], int]:
        total_result = await self.db.execute(
            select(func.count()).select_from(Payment).where(Payment.user_id == user_id)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Payment)
            .where(Payment.user_id == user_id)
            .order_by(Payment.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
