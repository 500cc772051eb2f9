"""Repository contracts.

Services depend only on these protocols; the SQLAlchemy implementations
live next to them and tests substitute in-memory fakes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Protocol

from expertiz.models.credit import CreditLedger, CreditTransaction, CreditTransactionType
from expertiz.models.notification import Notification, NotificationType
from expertiz.models.payment import Payment
from expertiz.models.report import AIAnalysisResult, MediaItem, VehicleReport
from expertiz.models.user import User

LedgerMutation = Callable[[CreditLedger], None]


@dataclass(frozen=True)
class LedgerEntry:
    """Outcome of one atomic ledger mutation."""
    ledger: CreditLedger
    transaction: CreditTransaction
    # True when the idempotency key was already used and nothing changed.
    replayed: bool = False


class UserRepositoryInterface(Protocol):
    async def get(self, user_id: int) -> User | None:  # pragma: no cover - Protocol
        ...

    async def get_by_email(self, email: str) -> User | None:  # pragma: no cover - Protocol
        ...

    async def add(self, user: User) -> User:  # pragma: no cover - Protocol
        ...

    async def list_active_ids(self) -> list[int]:  # pragma: no cover - Protocol
        ...


class CreditLedgerRepositoryInterface(Protocol):
    """Per-user ledger rows and their append-only transactions.

    `apply` is the only way to change a balance. It must run the mutation
    and the transaction insert as one atomic read-modify-write on the
    user's row, serialized against other mutations of the same user.
    """

    async def get(self, user_id: int) -> CreditLedger | None:  # pragma: no cover - Protocol
        ...

    async def create(self, user_id: int) -> CreditLedger:  # pragma: no cover - Protocol
        ...

    async def apply(
        self,
        user_id: int,
        transaction_type: CreditTransactionType,
        amount: Decimal,
        mutate: LedgerMutation,
        description: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerEntry:  # pragma: no cover - Protocol
        ...

    async def find_by_idempotency_key(
        self, user_id: int, idempotency_key: str
    ) -> CreditTransaction | None:  # pragma: no cover - Protocol
        ...

    async def list_transactions(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[CreditTransaction], int]:  # pragma: no cover - Protocol
        ...


class ReportRepositoryInterface(Protocol):
    async def add(self, report: VehicleReport) -> VehicleReport:  # pragma: no cover - Protocol
        ...

    async def get(self, report_id: int) -> VehicleReport | None:  # pragma: no cover - Protocol
        ...

    async def get_for_update(self, report_id: int) -> VehicleReport | None:  # pragma: no cover - Protocol
        ...

    async def save(self, report: VehicleReport) -> VehicleReport:  # pragma: no cover - Protocol
        ...

    async def commit(self) -> None:  # pragma: no cover - Protocol
        ...

    async def delete(self, report: VehicleReport) -> None:  # pragma: no cover - Protocol
        ...

    async def list_for_user(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[VehicleReport], int]:  # pragma: no cover - Protocol
        ...

    async def add_media(self, items: list[MediaItem]) -> list[MediaItem]:  # pragma: no cover - Protocol
        ...

    async def list_media(self, report_id: int) -> list[MediaItem]:  # pragma: no cover - Protocol
        ...

    async def count_media(self, report_id: int) -> int:  # pragma: no cover - Protocol
        ...

    async def mark_media_processed(self, report_id: int) -> None:  # pragma: no cover - Protocol
        ...

    async def add_analysis_result(
        self, result: AIAnalysisResult
    ) -> AIAnalysisResult:  # pragma: no cover - Protocol
        ...

    async def list_stale_processing(
        self, cutoff: datetime, limit: int
    ) -> list[VehicleReport]:  # pragma: no cover - Protocol
        ...

    async def list_pending_refunds(self, limit: int) -> list[VehicleReport]:  # pragma: no cover - Protocol
        ...


class NotificationRepositoryInterface(Protocol):
    async def add(self, notification: Notification) -> Notification:  # pragma: no cover - Protocol
        ...

    async def add_many(self, notifications: list[Notification]) -> int:  # pragma: no cover - Protocol
        ...

    async def get(self, notification_id: int) -> Notification | None:  # pragma: no cover - Protocol
        ...

    async def list_for_user(
        self,
        user_id: int,
        page: int,
        limit: int,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
    ) -> tuple[list[Notification], int]:  # pragma: no cover - Protocol
        ...

    async def count_unread(self, user_id: int) -> int:  # pragma: no cover - Protocol
        ...

    async def mark_read(self, notification: Notification) -> Notification:  # pragma: no cover - Protocol
        ...

    async def mark_all_read(self, user_id: int) -> int:  # pragma: no cover - Protocol
        ...

    async def delete(self, notification: Notification) -> None:  # pragma: no cover - Protocol
        ...


class PaymentRepositoryInterface(Protocol):
    async def add(self, payment: Payment) -> Payment:  # pragma: no cover - Protocol
        ...

    async def get(self, payment_id: int) -> Payment | None:  # pragma: no cover - Protocol
        ...

    async def get_for_update(self, payment_id: int) -> Payment | None:  # pragma: no cover - Protocol
        ...

    async def save(self, payment: Payment) -> Payment:  # pragma: no cover - Protocol
        ...

    async def list_for_user(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[Payment], int]:  # pragma: no cover - Protocol
        ...
