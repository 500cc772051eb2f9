"""Pydantic schemas."""
from expertiz.schemas.user import (
    UserCreate,
    UserLogin,
    UserResponse,
    Token,
)
from expertiz.schemas.credit import (
    CreditGrant,
    CreditHistoryResponse,
    CreditsResponse,
    CreditSummary,
    CreditTransactionResponse,
)
from expertiz.schemas.report import (
    MediaItemResponse,
    MediaUploadResponse,
    PricingResponse,
    ReportBrief,
    ReportListResponse,
    ReportResponse,
    ReportStart,
    ReportStartResponse,
    ReportStatusResponse,
    VehicleInfo,
)
from expertiz.schemas.payment import (
    CreditPackageResponse,
    CreditPackagesResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentWebhookEvent,
    PurchaseRequest,
)
from expertiz.schemas.notification import (
    BroadcastResponse,
    MaintenanceNotice,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)

__all__ = [
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "Token",
    "CreditGrant",
    "CreditHistoryResponse",
    "CreditsResponse",
    "CreditSummary",
    "CreditTransactionResponse",
    "MediaItemResponse",
    "MediaUploadResponse",
    "PricingResponse",
    "ReportBrief",
    "ReportListResponse",
    "ReportResponse",
    "ReportStart",
    "ReportStartResponse",
    "ReportStatusResponse",
    "VehicleInfo",
    "BroadcastResponse",
    "MaintenanceNotice",
    "MarkAllReadResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "UnreadCountResponse",
    "CreditPackageResponse",
    "CreditPackagesResponse",
    "PaymentListResponse",
    "PaymentResponse",
    "PaymentWebhookEvent",
    "PurchaseRequest",
]
