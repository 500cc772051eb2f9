"""In-memory repositories and invokers for service tests."""
from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable

from expertiz.config import DEFAULT_REPORT_PRICES, Settings
from expertiz.exceptions import AnalysisFailure, NotFound
from expertiz.models.credit import CreditLedger, CreditTransaction, CreditTransactionType
from expertiz.models.notification import Notification, NotificationType
from expertiz.models.payment import Payment
from expertiz.models.report import (
    AIAnalysisResult,
    MediaItem,
    MediaKind,
    RefundStatus,
    ReportStatus,
    ReportType,
    VehicleReport,
)
from expertiz.models.user import User, UserRole
from expertiz.repositories.interfaces import LedgerEntry, LedgerMutation
from expertiz.services.analysis import AnalysisOutcome, FakeAnalysisInvoker, MediaInput
from expertiz.services.credit_service import CreditService
from expertiz.services.notification_service import NotificationService
from expertiz.services.payment_service import PaymentService
from expertiz.services.report_service import MediaUpload, ReportService
from expertiz.utils.storage import StorageService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
WAV_BYTES = b"RIFF" + b"\x00" * 60


def _now() -> datetime:
    return datetime.now(timezone.utc)


def make_settings(prices: dict[str, Decimal] | None = None, **overrides: Any) -> Settings:
    report_prices = dict(DEFAULT_REPORT_PRICES)
    report_prices.update(prices or {})
    overrides.setdefault("ai_provider", "fake")
    return Settings(report_prices=report_prices, **overrides)


def image_upload(
    name: str = "front.png",
    kind: MediaKind = MediaKind.EXTERIOR,
    content_type: str | None = "image/png",
    content: bytes = PNG_BYTES,
) -> MediaUpload:
    return MediaUpload(kind=kind, filename=name, content_type=content_type, content=content)


def audio_upload(name: str = "engine.wav") -> MediaUpload:
    return MediaUpload(kind=MediaKind.AUDIO, filename=name, content_type="audio/wav", content=WAV_BYTES)


class FakeUserRepository:
    def __init__(self) -> None:
        self.users: dict[int, User] = {}
        self._ids = itertools.count(1)

    async def get(self, user_id: int) -> User | None:
        return self.users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return next((u for u in self.users.values() if u.email == email), None)

    async def add(self, user: User) -> User:
        user.id = next(self._ids)
        if user.is_active is None:
            user.is_active = True
        if user.role is None:
            user.role = UserRole.USER
        user.created_at = _now()
        self.users[user.id] = user
        return user

    async def list_active_ids(self) -> list[int]:
        return sorted(user_id for user_id, user in self.users.items() if user.is_active)


class FakeCreditLedgerRepository:
    """Ledger with a per-user lock, mirroring the row lock of the SQL version."""

    def __init__(self) -> None:
        self.ledgers: dict[int, CreditLedger] = {}
        self.transactions: list[CreditTransaction] = []
        self.failing_types: set[CreditTransactionType] = set()
        self._locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._ids = itertools.count(1)

    def seed(self, user_id: int, balance: Decimal | str | int = 0) -> CreditLedger:
        amount = Decimal(str(balance))
        ledger = CreditLedger(
            user_id=user_id,
            balance=amount,
            total_purchased=amount,
            total_used=Decimal("0"),
            total_refunded=Decimal("0"),
        )
        self.ledgers[user_id] = ledger
        return ledger

    def of_type(self, user_id: int, transaction_type: CreditTransactionType) -> list[CreditTransaction]:
        return [
            t for t in self.transactions
            if t.user_id == user_id and t.transaction_type == transaction_type
        ]

    async def get(self, user_id: int) -> CreditLedger | None:
        return self.ledgers.get(user_id)

    async def create(self, user_id: int) -> CreditLedger:
        return self.seed(user_id)

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
        async with self._locks[user_id]:
            ledger = self.ledgers.get(user_id)
            if ledger is None:
                raise NotFound("Credit ledger for user", user_id)
            if transaction_type in self.failing_types:
                raise RuntimeError("ledger unavailable")

            if idempotency_key:
                existing = await self.find_by_idempotency_key(user_id, idempotency_key)
                if existing is not None:
                    return LedgerEntry(ledger=ledger, transaction=existing, replayed=True)

            # Give concurrent callers a chance to interleave.
            await asyncio.sleep(0)

            snapshot = (ledger.balance, ledger.total_purchased, ledger.total_used, ledger.total_refunded)
            try:
                mutate(ledger)
            except Exception:
                (ledger.balance, ledger.total_purchased, ledger.total_used, ledger.total_refunded) = snapshot
                raise

            transaction = CreditTransaction(
                id=next(self._ids),
                user_id=user_id,
                transaction_type=transaction_type,
                amount=amount,
                balance_after=ledger.balance,
                description=description,
                reference_id=reference_id,
                idempotency_key=idempotency_key,
                created_at=_now(),
            )
            self.transactions.append(transaction)
            return LedgerEntry(ledger=ledger, transaction=transaction)

    async def find_by_idempotency_key(
        self, user_id: int, idempotency_key: str
    ) -> CreditTransaction | None:
        return next(
            (
                t for t in self.transactions
                if t.user_id == user_id and t.idempotency_key == idempotency_key
            ),
            None,
        )

    async def list_transactions(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[CreditTransaction], int]:
        items = [t for t in reversed(self.transactions) if t.user_id == user_id]
        start = (page - 1) * page_size
        return items[start:start + page_size], len(items)


class FakeReportRepository:
    def __init__(self) -> None:
        self.reports: dict[int, VehicleReport] = {}
        self.media: dict[int, list[MediaItem]] = defaultdict(list)
        self.results: list[AIAnalysisResult] = []
        self.deleted: list[int] = []
        self.commits = 0
        self._ids = itertools.count(1)
        self._media_ids = itertools.count(1)

    async def add(self, report: VehicleReport) -> VehicleReport:
        report.id = next(self._ids)
        report.created_at = report.updated_at = _now()
        self.reports[report.id] = report
        return report

    async def get(self, report_id: int) -> VehicleReport | None:
        return self.reports.get(report_id)

    async def get_for_update(self, report_id: int) -> VehicleReport | None:
        return self.reports.get(report_id)

    async def save(self, report: VehicleReport) -> VehicleReport:
        report.updated_at = _now()
        return report

    async def commit(self) -> None:
        self.commits += 1

    async def delete(self, report: VehicleReport) -> None:
        self.reports.pop(report.id, None)
        self.media.pop(report.id, None)
        self.deleted.append(report.id)

    async def list_for_user(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[VehicleReport], int]:
        items = sorted(
            (r for r in self.reports.values() if r.user_id == user_id),
            key=lambda r: r.id,
            reverse=True,
        )
        start = (page - 1) * page_size
        return items[start:start + page_size], len(items)

    async def add_media(self, items: list[MediaItem]) -> list[MediaItem]:
        for item in items:
            item.id = next(self._media_ids)
            item.created_at = _now()
            self.media[item.report_id].append(item)
        return items

    async def list_media(self, report_id: int) -> list[MediaItem]:
        return list(self.media.get(report_id, []))

    async def count_media(self, report_id: int) -> int:
        return len(self.media.get(report_id, []))

    async def mark_media_processed(self, report_id: int) -> None:
        for item in self.media.get(report_id, []):
            item.ai_processed = True

    async def add_analysis_result(self, result: AIAnalysisResult) -> AIAnalysisResult:
        self.results.append(result)
        return result

    async def list_stale_processing(self, cutoff: datetime, limit: int) -> list[VehicleReport]:
        stale = [
            r for r in self.reports.values()
            if r.status == ReportStatus.PROCESSING and r.last_activity_at < cutoff
        ]
        return stale[:limit]

    async def list_pending_refunds(self, limit: int) -> list[VehicleReport]:
        pending = [
            r for r in self.reports.values()
            if r.status == ReportStatus.FAILED and r.refund_status == RefundStatus.PENDING
        ]
        return pending[:limit]


class FakeNotificationRepository:
    def __init__(self) -> None:
        self.items: list[Notification] = []
        self.fail = False
        self._ids = itertools.count(1)

    def _check(self) -> None:
        if self.fail:
            raise RuntimeError("notifications table unavailable")

    def titles(self, user_id: int | None = None) -> list[str]:
        return [n.title for n in self.items if user_id is None or n.user_id == user_id]

    async def add(self, notification: Notification) -> Notification:
        self._check()
        notification.id = next(self._ids)
        notification.created_at = _now()
        self.items.append(notification)
        return notification

    async def add_many(self, notifications: list[Notification]) -> int:
        self._check()
        for notification in notifications:
            await self.add(notification)
        return len(notifications)

    async def get(self, notification_id: int) -> Notification | None:
        return next((n for n in self.items if n.id == notification_id), None)

    async def list_for_user(
        self,
        user_id: int,
        page: int,
        limit: int,
        unread_only: bool = False,
        notification_type: NotificationType | None = None,
    ) -> tuple[list[Notification], int]:
        items = [
            n for n in reversed(self.items)
            if n.user_id == user_id
            and (not unread_only or not n.is_read)
            and (notification_type is None or n.type == notification_type)
        ]
        start = (page - 1) * limit
        return items[start:start + limit], len(items)

    async def count_unread(self, user_id: int) -> int:
        return sum(1 for n in self.items if n.user_id == user_id and not n.is_read)

    async def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        updated = 0
        for notification in self.items:
            if notification.user_id == user_id and not notification.is_read:
                notification.is_read = True
                updated += 1
        return updated

    async def delete(self, notification: Notification) -> None:
        self.items.remove(notification)


class FailingInvoker:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or AnalysisFailure("AI provider returned HTTP 500")
        self.calls = 0

    async def analyze(
        self, report_type: ReportType, vehicle: dict[str, Any], media: list[MediaInput]
    ) -> AnalysisOutcome:
        self.calls += 1
        raise self.error


class SlowInvoker(FakeAnalysisInvoker):
    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    async def analyze(
        self, report_type: ReportType, vehicle: dict[str, Any], media: list[MediaInput]
    ) -> AnalysisOutcome:
        await asyncio.sleep(self.delay)
        return await super().analyze(report_type, vehicle, media)


class HookedInvoker(FakeAnalysisInvoker):
    """Runs `hook` while the analysis is in flight."""

    def __init__(self, hook: Callable[[], Any]) -> None:
        super().__init__()
        self.hook = hook

    async def analyze(
        self, report_type: ReportType, vehicle: dict[str, Any], media: list[MediaInput]
    ) -> AnalysisOutcome:
        await self.hook()
        return await super().analyze(report_type, vehicle, media)


@dataclass
class ReportFixture:
    service: ReportService
    reports: FakeReportRepository
    ledger: FakeCreditLedgerRepository
    notifications: FakeNotificationRepository
    credits: CreditService
    invoker: Any
    storage: StorageService
    settings: Settings


def build_report_fixture(
    upload_dir,
    invoker: Any = None,
    prices: dict[str, Decimal] | None = None,
    **settings_overrides: Any,
) -> ReportFixture:
    settings = make_settings(prices, upload_dir=str(upload_dir), **settings_overrides)
    reports = FakeReportRepository()
    ledger = FakeCreditLedgerRepository()
    notification_repo = FakeNotificationRepository()
    notifications = NotificationService(notification_repo)
    credits = CreditService(ledger, notifications)
    storage = StorageService(base_dir=str(upload_dir), url_prefix="/api/files")
    invoker = invoker or FakeAnalysisInvoker()
    service = ReportService(
        reports=reports,
        credits=credits,
        notifications=notifications,
        invoker=invoker,
        storage=storage,
        settings=settings,
    )
    return ReportFixture(
        service=service,
        reports=reports,
        ledger=ledger,
        notifications=notification_repo,
        credits=credits,
        invoker=invoker,
        storage=storage,
        settings=settings,
    )


class FakePaymentRepository:
    def __init__(self) -> None:
        self.payments: dict[int, Payment] = {}
        self._ids = itertools.count(1)

    async def add(self, payment: Payment) -> Payment:
        payment.id = next(self._ids)
        payment.created_at = payment.updated_at = _now()
        self.payments[payment.id] = payment
        return payment

    async def get(self, payment_id: int) -> Payment | None:
        return self.payments.get(payment_id)

    async def get_for_update(self, payment_id: int) -> Payment | None:
        return self.payments.get(payment_id)

    async def save(self, payment: Payment) -> Payment:
        payment.updated_at = _now()
        return payment

    async def list_for_user(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[Payment], int]:
        items = sorted(
            (p for p in self.payments.values() if p.user_id == user_id),
            key=lambda p: p.id,
            reverse=True,
        )
        start = (page - 1) * page_size
        return items[start:start + page_size], len(items)


@dataclass
class PaymentFixture:
    service: PaymentService
    payments: FakePaymentRepository
    ledger: FakeCreditLedgerRepository
    notifications: FakeNotificationRepository


def build_payment_fixture(**settings_overrides: Any) -> PaymentFixture:
    payments = FakePaymentRepository()
    ledger = FakeCreditLedgerRepository()
    notification_repo = FakeNotificationRepository()
    notifications = NotificationService(notification_repo)
    service = PaymentService(
        payments,
        CreditService(ledger, notifications),
        notifications,
        settings=make_settings(**settings_overrides),
    )
    return PaymentFixture(
        service=service,
        payments=payments,
        ledger=ledger,
        notifications=notification_repo,
    )
