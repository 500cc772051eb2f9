"""Payment API routes."""
import logging

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import ValidationError

from expertiz.api.deps import PaymentServiceDep
from expertiz.config import get_settings
from expertiz.exceptions import PermissionDenied
from expertiz.schemas.payment import (
    CreditPackageResponse,
    CreditPackagesResponse,
    PaymentResponse,
    PaymentWebhookEvent,
)
from expertiz.utils.security import verify_webhook_signature

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/packages", response_model=CreditPackagesResponse)
async def list_packages(payment_service: PaymentServiceDep):
    """Purchasable credit packages."""
    return CreditPackagesResponse(
        packages=[
            CreditPackageResponse(
                id=package_id,
                price=package.price,
                credits=package.credits,
                bonus=package.bonus,
            )
            for package_id, package in payment_service.packages().items()
        ]
    )


@router.post("/webhook", response_model=PaymentResponse)
async def payment_webhook(
    request: Request,
    payment_service: PaymentServiceDep,
    x_payment_signature: str | None = Header(None),
):
    """Settle a payment from the provider's signed callback.

    Deliveries for already settled payments return the payment unchanged.
    """
    body = await request.body()
    if not verify_webhook_signature(get_settings().payment_webhook_secret, body, x_payment_signature):
        logger.warning("Rejected payment webhook with an invalid signature")
        raise PermissionDenied("Invalid payment webhook signature")

    try:
        event = PaymentWebhookEvent.model_validate_json(body)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid payment webhook payload",
        )

    if event.status == "succeeded":
        return await payment_service.confirm(event.payment_id, event.provider_reference)
    return await payment_service.fail(event.payment_id, event.error)
