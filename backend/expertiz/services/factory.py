"""Wiring of services onto one database session."""
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.repositories import (
    CreditLedgerRepository,
    NotificationRepository,
    PaymentRepository,
    ReportRepository,
    UserRepository,
)
from expertiz.services.analysis import AnalysisInvoker, get_analysis_invoker
from expertiz.services.auth_service import AuthService
from expertiz.services.credit_service import CreditService
from expertiz.services.notification_service import NotificationService
from expertiz.services.payment_service import PaymentService
from expertiz.services.report_service import ReportService
from expertiz.utils.storage import storage


def build_notification_service(db: AsyncSession) -> NotificationService:
    return NotificationService(NotificationRepository(db))


def build_credit_service(db: AsyncSession) -> CreditService:
    return CreditService(CreditLedgerRepository(db), build_notification_service(db))


def build_auth_service(db: AsyncSession) -> AuthService:
    return AuthService(
        UserRepository(db),
        build_credit_service(db),
        build_notification_service(db),
    )


def build_report_service(
    db: AsyncSession, invoker: AnalysisInvoker | None = None
) -> ReportService:
    notifications = build_notification_service(db)
    return ReportService(
        reports=ReportRepository(db),
        credits=CreditService(CreditLedgerRepository(db), notifications),
        notifications=notifications,
        invoker=invoker or get_analysis_invoker(),
        storage=storage,
    )


def build_payment_service(db: AsyncSession) -> PaymentService:
    notifications = build_notification_service(db)
    return PaymentService(
        PaymentRepository(db),
        CreditService(CreditLedgerRepository(db), notifications),
        notifications,
    )
