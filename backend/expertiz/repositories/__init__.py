"""Repositories (one per aggregate)."""
from expertiz.repositories.credit_repository import CreditLedgerRepository
from expertiz.repositories.interfaces import (
    CreditLedgerRepositoryInterface,
    LedgerEntry,
    LedgerMutation,
    NotificationRepositoryInterface,
    PaymentRepositoryInterface,
    ReportRepositoryInterface,
    UserRepositoryInterface,
)
from expertiz.repositories.notification_repository import NotificationRepository
from expertiz.repositories.payment_repository import PaymentRepository
from expertiz.repositories.report_repository import ReportRepository
from expertiz.repositories.user_repository import UserRepository

__all__ = [
    "CreditLedgerRepository",
    "NotificationRepository",
    "PaymentRepository",
    "ReportRepository",
    "UserRepository",
    "CreditLedgerRepositoryInterface",
    "NotificationRepositoryInterface",
    "PaymentRepositoryInterface",
    "ReportRepositoryInterface",
    "UserRepositoryInterface",
    "LedgerEntry",
    "LedgerMutation",
]
