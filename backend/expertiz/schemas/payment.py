"""Payment schemas for request/response validation."""
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from expertiz.models.payment import PaymentStatus


class CreditPackageResponse(BaseModel):
    """Schema for one purchasable credit package."""
    id: str
    price: Decimal
    credits: Decimal
    bonus: Decimal


class CreditPackagesResponse(BaseModel):
    packages: list[CreditPackageResponse]


class PurchaseRequest(BaseModel):
    """Schema for starting a credit purchase."""
    package: str = Field(..., min_length=1, max_length=50)


class PaymentResponse(BaseModel):
    """Schema for payment response."""
    id: int
    reference: str
    package: str
    amount: Decimal
    credits: Decimal
    status: PaymentStatus
    provider_reference: str | None
    failure_reason: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class PaymentListResponse(BaseModel):
    payments: list[PaymentResponse]
    total: int
    page: int
    page_size: int


class PaymentWebhookEvent(BaseModel):
    """Payment result pushed by the payment provider.

    `reference` is the `PAYMENT-<id>` value handed out at purchase time.
    """
    reference: str = Field(..., pattern=r"^PAYMENT-\d+$")
    status: Literal["succeeded", "failed"]
    provider_reference: str | None = Field(None, max_length=100)
    error: str | None = None

    @property
    def payment_id(self) -> int:
        return int(self.reference.split("-", 1)[1])
