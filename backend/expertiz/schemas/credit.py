"""Credit schemas for request/response validation."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from expertiz.models.credit import CreditTransactionType


class CreditTransactionResponse(BaseModel):
    """Schema for one ledger transaction."""
    id: int
    transaction_type: CreditTransactionType
    amount: Decimal
    balance_after: Decimal
    description: str | None
    reference_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditSummary(BaseModel):
    """Schema for the current ledger state."""
    balance: Decimal
    total_purchased: Decimal
    total_used: Decimal
    total_refunded: Decimal

    model_config = {"from_attributes": True}


class CreditsResponse(BaseModel):
    """Balance plus the latest transactions."""
    summary: CreditSummary
    recent_transactions: list[CreditTransactionResponse]


class CreditHistoryResponse(BaseModel):
    """Schema for paged transaction history."""
    transactions: list[CreditTransactionResponse]
    total: int
    page: int
    page_size: int


class CreditGrant(BaseModel):
    """Schema for crediting a user after payment confirmation."""
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    reference_id: str | None = Field(None, max_length=100)
    reason: str = Field("Credit purchase", max_length=255)
