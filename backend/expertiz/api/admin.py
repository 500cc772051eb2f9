"""Admin API routes."""
from fastapi import APIRouter, Request, status

from expertiz.api.deps import AdminUser, CreditServiceDep, DbSession, NotificationServiceDep
from expertiz.exceptions import NotFound
from expertiz.repositories import UserRepository
from expertiz.schemas.credit import CreditGrant, CreditTransactionResponse
from expertiz.schemas.notification import BroadcastResponse, MaintenanceNotice
from expertiz.utils.rate_limiter import DEFAULT_LIMIT, limiter

router = APIRouter()


@router.post(
    "/users/{user_id}/credits",
    response_model=CreditTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(DEFAULT_LIMIT)
async def grant_credits(
    request: Request,
    user_id: int,
    grant: CreditGrant,
    admin: AdminUser,
    db: DbSession,
    credit_service: CreditServiceDep,
):
    """Credit a user after a confirmed payment.

    `reference_id` doubles as the idempotency key, so a replayed payment
    confirmation does not add credits twice.
    """
    if await UserRepository(db).get(user_id) is None:
        raise NotFound("User", user_id)
    entry = await credit_service.credit(
        user_id,
        grant.amount,
        reference_id=grant.reference_id,
        reason=grant.reason,
        idempotency_key=f"payment:{grant.reference_id}" if grant.reference_id else None,
    )
    return entry.transaction


@router.post("/notifications/maintenance", response_model=BroadcastResponse)
@limiter.limit(DEFAULT_LIMIT)
async def broadcast_maintenance(
    request: Request,
    notice: MaintenanceNotice,
    admin: AdminUser,
    db: DbSession,
    notification_service: NotificationServiceDep,
):
    """Send a maintenance notice to the given (or all active) users."""
    user_ids = notice.user_ids
    if user_ids is None:
        user_ids = await UserRepository(db).list_active_ids()
    sent = await notification_service.broadcast_maintenance(user_ids, notice.message)
    return BroadcastResponse(sent=sent)
