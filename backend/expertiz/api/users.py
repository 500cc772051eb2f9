"""Current user API routes."""
from fastapi import APIRouter, Query, Request, status

from expertiz.api.deps import (
    CreditServiceDep,
    CurrentUser,
    NotificationServiceDep,
    PaymentServiceDep,
)
from expertiz.models.notification import NotificationType
from expertiz.schemas.credit import (
    CreditHistoryResponse,
    CreditsResponse,
    CreditSummary,
    CreditTransactionResponse,
)
from expertiz.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from expertiz.schemas.payment import PaymentListResponse, PaymentResponse, PurchaseRequest
from expertiz.schemas.user import UserResponse
from expertiz.utils.rate_limiter import DEFAULT_LIMIT, limiter

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_profile(current_user: CurrentUser):
    """Get current user profile."""
    return current_user


@router.get("/credits", response_model=CreditsResponse)
async def get_credits(current_user: CurrentUser, credit_service: CreditServiceDep):
    """Current balance and the latest transactions."""
    ledger = await credit_service.get_summary(current_user.id)
    transactions, _ = await credit_service.get_history(current_user.id, page=1, page_size=10)
    return CreditsResponse(
        summary=CreditSummary.model_validate(ledger),
        recent_transactions=[CreditTransactionResponse.model_validate(t) for t in transactions],
    )


@router.get("/credits/transactions", response_model=CreditHistoryResponse)
async def get_credit_transactions(
    current_user: CurrentUser,
    credit_service: CreditServiceDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Paged credit transaction history."""
    transactions, total = await credit_service.get_history(current_user.id, page, page_size)
    return CreditHistoryResponse(
        transactions=[CreditTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/credits/purchase",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(DEFAULT_LIMIT)
async def purchase_credits(
    request: Request,
    purchase: PurchaseRequest,
    current_user: CurrentUser,
    payment_service: PaymentServiceDep,
):
    """Start a credit package purchase.

    Credits are added once the payment provider confirms the returned
    `reference` through the payment webhook.
    """
    return await payment_service.start_purchase(current_user.id, purchase.package)


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments(
    current_user: CurrentUser,
    payment_service: PaymentServiceDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    payments, total = await payment_service.list_for_user(current_user.id, page, page_size)
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    current_user: CurrentUser,
    notification_service: NotificationServiceDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    type: NotificationType | None = None,
):
    """List current user's notifications."""
    notifications, total = await notification_service.list_for_user(
        current_user.id,
        page=page,
        limit=limit,
        unread_only=unread_only,
        notification_type=type,
    )
    unread = await notification_service.unread_count(current_user.id)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        page=page,
        limit=limit,
        unread_count=unread,
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(current_user: CurrentUser, notification_service: NotificationServiceDep):
    return UnreadCountResponse(count=await notification_service.unread_count(current_user.id))
