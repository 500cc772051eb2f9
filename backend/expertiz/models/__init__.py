"""Database models."""
from expertiz.models.user import User, UserRole
from expertiz.models.credit import CreditLedger, CreditTransaction, CreditTransactionType
from expertiz.models.report import (
    AIAnalysisResult,
    MediaItem,
    MediaKind,
    RefundStatus,
    ReportStatus,
    ReportType,
    VehicleReport,
)
from expertiz.models.notification import Notification, NotificationType
from expertiz.models.payment import Payment, PaymentStatus

__all__ = [
    "User",
    "UserRole",
    "CreditLedger",
    "CreditTransaction",
    "CreditTransactionType",
    "VehicleReport",
    "ReportType",
    "ReportStatus",
    "RefundStatus",
    "MediaItem",
    "MediaKind",
    "AIAnalysisResult",
    "Notification",
    "NotificationType",
    "Payment",
    "PaymentStatus",
]
