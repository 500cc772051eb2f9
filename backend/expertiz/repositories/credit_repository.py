"""Credit ledger repository backed by SQLAlchemy.

Balance changes use pessimistic row locking: the user's `user_credits` row
is read with `SELECT ... FOR UPDATE`, mutated and written back together with
the new transaction row inside one savepoint.
"""
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.exceptions import NotFound
from expertiz.models.credit import CreditLedger, CreditTransaction, CreditTransactionType
from expertiz.repositories.interfaces import LedgerEntry, LedgerMutation


class CreditLedgerRepository:
    """Data access layer for `user_credits` and `credit_transactions`."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> CreditLedger | None:
        result = await self.db.execute(
            select(CreditLedger).where(CreditLedger.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: int) -> CreditLedger:
        ledger = CreditLedger(
            user_id=user_id,
            balance=Decimal("0"),
            total_purchased=Decimal("0"),
            total_used=Decimal("0"),
            total_refunded=Decimal("0"),
        )
        self.db.add(ledger)
        await self.db.flush()
        return ledger

    async def _lock(self, user_id: int) -> CreditLedger:
        result = await self.db.execute(
            select(CreditLedger)
            .where(CreditLedger.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        ledger = result.scalar_one_or_none()
        if ledger is None:
            raise NotFound("Credit ledger for user", user_id)
        return ledger

    async def apply(
        self,
        user_id: int,
        transaction_type: CreditTransactionType,
        amount: Decimal,
        mutate: LedgerMutation,
        description: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:
        async with self.db.begin_nested():
            ledger = await self._lock(user_id)

            # Checked under the row lock so concurrent retries see each other.
            if idempotency_key:
                existing = await self.find_by_idempotency_key(user_id, idempotency_key)
                if existing is not None:
                    return LedgerEntry(ledger=ledger, transaction=existing, replayed=True)

            mutate(ledger)

            transaction = CreditTransaction(
                user_id=user_id,
                transaction_type=transaction_type,
                amount=amount,
                balance_after=ledger.balance,
                description=description,
                reference_id=reference_id,
                idempotency_key=idempotency_key,
            )
            self.db.add(transaction)
            await self.db.flush()

        return LedgerEntry(ledger=ledger, transaction=transaction)

    async def find_by_idempotency_key(
        self, user_id: int, idempotency_key: str
    ) -> CreditTransaction | None:
        result = await self.db.execute(
            select(CreditTransaction).where(
                CreditTransaction.user_id == user_id,
                CreditTransaction.idempotency_key == idempotency_key,
            )
        )
        return result.scalar_one_or_none()

    async def list_transactions(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[CreditTransaction], int]:
        total_result = await self.db.execute(
            select(func.count()).select_from(CreditTransaction).where(CreditTransaction.user_id == user_id)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
