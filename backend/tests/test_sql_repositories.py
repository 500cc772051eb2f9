from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from expertiz.exceptions import InsufficientCredit, NotFound
from expertiz.models import (
    CreditTransaction,
    MediaItem,
    MediaKind,
    NotificationType,
    PaymentStatus,
    RefundStatus,
    ReportStatus,
    ReportType,
    User,
    VehicleReport,
)
from expertiz.repositories import (
    CreditLedgerRepository,
    NotificationRepository,
    PaymentRepository,
    ReportRepository,
    UserRepository,
)
from expertiz.services.analysis import FakeAnalysisInvoker
from expertiz.services.credit_service import CreditService
from expertiz.services.notification_service import NotificationService
from expertiz.services.payment_service import PaymentService
from expertiz.services.report_service import ReportService
from expertiz.utils.storage import StorageService
from tests.fakes import FailingInvoker, image_upload, make_settings


async def _user(db, email: str = "driver@example.com", active: bool = True) -> User:
    return await UserRepository(db).add(
        User(email=email, hashed_password="x", first_name="Ayse", last_name="Yilmaz", is_active=active)
    )


def _report(user_id: int, **overrides) -> VehicleReport:
    values = dict(
        user_id=user_id,
        report_type=ReportType.PAINT_ANALYSIS,
        status=ReportStatus.PROCESSING,
        total_cost=Decimal("49.00"),
        refund_status=RefundStatus.NONE,
        refund_attempts=0,
        last_activity_at=datetime.now(timezone.utc),
    )
    values.update(overrides)
    return VehicleReport(**values)


async def _transaction_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(CreditTransaction))
    return result.scalar()


async def test_user_repository_lookups(db) -> None:
    active = await _user(db)
    await _user(db, email="gone@example.com", active=False)
    repo = UserRepository(db)

    assert (await repo.get_by_email("driver@example.com")).id == active.id
    assert await repo.get_by_email("nobody@example.com") is None
    assert await repo.list_active_ids() == [active.id]


async def test_ledger_debit_credit_and_refund(db) -> None:
    user = await _user(db)
    service = CreditService(CreditLedgerRepository(db))
    await service.open_ledger(user.id)

    await service.credit(user.id, "500", reference_id="pay-1")
    await service.debit(user.id, "300", reason="report", idempotency_key="report:1:debit")
    await service.refund(user.id, "300", reason="failed", idempotency_key="report:1:refund")

    ledger = await service.get_summary(user.id)
    assert ledger.balance == Decimal("500.00")
    assert ledger.total_purchased == Decimal("500.00")
    assert ledger.total_used == Decimal("300.00")
    assert ledger.total_refunded == Decimal("300.00")

    history, total = await service.get_history(user.id)
    assert total == 3
    assert history[0].balance_after == Decimal("500.00")


async def test_ledger_rejected_debit_rolls_back_savepoint_only(db) -> None:
    user = await _user(db)
    service = CreditService(CreditLedgerRepository(db))
    await service.open_ledger(user.id)
    await service.credit(user.id, "100", reference_id="pay-1")

    with pytest.raises(InsufficientCredit):
        await service.debit(user.id, "100.01", reason="report")

    # The outer transaction is still usable.
    await service.debit(user.id, "40", reason="report")
    ledger = await service.get_summary(user.id)
    assert ledger.balance == Decimal("60.00")
    assert await _transaction_count(db) == 2


async def test_ledger_idempotency_key_replays(db) -> None:
    user = await _user(db)
    service = CreditService(CreditLedgerRepository(db))
    await service.open_ledger(user.id)
    await service.credit(user.id, "100", reference_id="pay-1")

    first = await service.refund(user.id, "25", reason="failed", idempotency_key="report:7:refund")
    second = await service.refund(user.id, "25", reason="failed", idempotency_key="report:7:refund")

    assert second.replayed
    assert second.transaction.id == first.transaction.id
    assert (await service.get_summary(user.id)).balance == Decimal("125.00")
    assert await _transaction_count(db) == 2


async def test_ledger_of_unknown_user_is_not_found(db) -> None:
    service = CreditService(CreditLedgerRepository(db))

    with pytest.raises(NotFound):
        await service.credit(404, "10")


async def test_report_repository_queries(db) -> None:
    user = await _user(db)
    repo = ReportRepository(db)
    now = datetime.now(timezone.utc)

    stale = await repo.add(_report(user.id, last_activity_at=now - timedelta(hours=2)))
    fresh = await repo.add(_report(user.id))
    pending_refund = await repo.add(
        _report(user.id, status=ReportStatus.FAILED, refund_status=RefundStatus.PENDING)
    )
    await repo.add(_report(user.id, status=ReportStatus.COMPLETED, last_activity_at=now - timedelta(hours=3)))

    reports, total = await repo.list_for_user(user.id, page=1, page_size=10)
    assert total == 4
    assert reports[0].id > reports[-1].id

    assert [r.id for r in await repo.list_stale_processing(now - timedelta(hours=1), 10)] == [stale.id]
    assert [r.id for r in await repo.list_pending_refunds(10)] == [pending_refund.id]

    locked = await repo.get_for_update(fresh.id)
    assert locked is fresh


async def test_media_rows_and_cascade_delete(db) -> None:
    user = await _user(db)
    repo = ReportRepository(db)
    report = await repo.add(_report(user.id))
    report_id = report.id
    await repo.add_media([
        MediaItem(
            report_id=report.id,
            kind=MediaKind.EXTERIOR,
            file_path=f"reports/{report.id}/a.png",
            file_url=f"/api/files/reports/{report.id}/a.png",
            original_filename="a.png",
            mime_type="image/png",
            file_size=10,
            ai_processed=False,
        )
    ])

    assert await repo.count_media(report_id) == 1
    await repo.mark_media_processed(report_id)
    db.expire_all()
    [item] = await repo.list_media(report_id)
    assert item.ai_processed is True

    report = await repo.get(report_id)
    await repo.delete(report)
    assert await repo.get(report_id) is None
    assert await repo.count_media(report_id) == 0


async def test_notification_repository_inbox(db) -> None:
    user = await _user(db)
    other = await _user(db, email="other@example.com")
    service = NotificationService(NotificationRepository(db))

    welcome = await service.notify_welcome(user.id, "Ayse")
    await service.notify_credit_added(user.id, Decimal("10"), Decimal("10"))
    await service.notify_welcome(other.id, "Mehmet")

    items, total = await service.list_for_user(user.id, notification_type=NotificationType.SUCCESS)
    assert total == 1
    assert items[0].id == welcome.id
    assert await service.unread_count(user.id) == 2

    await service.mark_read(user.id, welcome.id)
    assert await service.unread_count(user.id) == 1
    assert await service.mark_all_read(user.id) == 1
    assert await service.unread_count(other.id) == 1

    await service.delete(user.id, welcome.id)
    _, remaining = await service.list_for_user(user.id)
    assert remaining == 1

    assert await service.broadcast_maintenance([user.id, other.id], "Maintenance tonight") == 2


async def test_failed_notification_insert_keeps_outer_transaction(db) -> None:
    user = await _user(db)
    service = NotificationService(NotificationRepository(db))

    # Unknown user violates the foreign key inside the savepoint.
    assert await service.notify_welcome(999, "Ghost") is None

    assert await service.notify_welcome(user.id, "Ayse") is not None
    assert await service.unread_count(user.id) == 1


async def _report_service(db, tmp_path, invoker) -> ReportService:
    notifications = NotificationService(NotificationRepository(db))
    return ReportService(
        reports=ReportRepository(db),
        credits=CreditService(CreditLedgerRepository(db), notifications),
        notifications=notifications,
        invoker=invoker,
        storage=StorageService(base_dir=str(tmp_path)),
        settings=make_settings({"paint_analysis": Decimal("300")}, upload_dir=str(tmp_path)),
    )


@pytest.mark.parametrize(
    ("invoker", "status", "balance"),
    [
        (FakeAnalysisInvoker(), ReportStatus.COMPLETED, Decimal("200.00")),
        (FailingInvoker(), ReportStatus.FAILED, Decimal("500.00")),
    ],
)
async def test_report_workflow_on_database(db, tmp_path, invoker, status, balance) -> None:
    user = await _user(db)
    service = await _report_service(db, tmp_path, invoker)
    await service.credits.open_ledger(user.id)
    await service.credits.credit(user.id, "500", reference_id="pay-1")

    report = await service.create(user.id, ReportType.PAINT_ANALYSIS, {"plate": "34 ABC 123"})
    assert (await service.credits.get_summary(user.id)).balance == Decimal("200.00")
    await service.attach_media(user.id, report.id, [image_upload()])

    view = await service.analyze(user.id, report.id)
    await db.commit()

    assert view.status == status
    assert (await service.credits.get_summary(user.id)).balance == balance
    stored = await service.reports.get(report.id)
    assert stored.status == status
    if status == ReportStatus.FAILED:
        assert stored.refund_status == RefundStatus.REFUNDED
        assert stored.error_message
    else:
        assert stored.result_payload["report_type"] == "paint_analysis"


async def test_insufficient_credit_leaves_no_report_row(db, tmp_path) -> None:
    user = await _user(db)
    service = await _report_service(db, tmp_path, FakeAnalysisInvoker())
    await service.credits.open_ledger(user.id)
    await service.credits.credit(user.id, "299.99", reference_id="pay-1")

    with pytest.raises(InsufficientCredit):
        await service.create(user.id, ReportType.PAINT_ANALYSIS)

    _, total = await service.list_reports(user.id)
    assert total == 0
    assert (await service.credits.get_summary(user.id)).balance == Decimal("299.99")


async def test_payment_settlement_on_database(db) -> None:
    user = await _user(db)
    notifications = NotificationService(NotificationRepository(db))
    credits = CreditService(CreditLedgerRepository(db), notifications)
    service = PaymentService(PaymentRepository(db), credits, notifications, settings=make_settings())
    await credits.open_ledger(user.id)

    paid = await service.start_purchase(user.id, "starter")
    declined = await service.start_purchase(user.id, "enterprise")
    await service.confirm(paid.id, provider_reference="iyz-1")
    await service.confirm(paid.id, provider_reference="iyz-1")
    await service.fail(declined.id, "card declined")
    await db.commit()

    payments, total = await service.list_for_user(user.id)
    assert total == 2
    assert [p.status for p in payments] == [PaymentStatus.FAILED, PaymentStatus.COMPLETED]
    assert (await credits.get_summary(user.id)).balance == Decimal("150.00")
    assert await _transaction_count(db) == 1
    titles = [n.title for n in (await notifications.list_for_user(user.id))[0]]
    assert sorted(titles) == ["Credits added", "Payment failed"]
