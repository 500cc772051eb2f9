"""Credit ledger and credit transaction models."""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expertiz.database import Base

if TYPE_CHECKING:
    from expertiz.models.user import User


class CreditTransactionType(str, Enum):
    """Credit transaction type enumeration."""
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"


class CreditLedger(Base):
    """Per-user credit balance.

    Invariant: balance == total_purchased - total_used + total_refunded.
    Only CreditLedgerRepository.apply() mutates a row.
    """

    __tablename__ = "user_credits"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_user_credits_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    balance: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    total_purchased: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    total_used: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    total_refunded: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="credit_ledger")


class CreditTransaction(Base):
    """Append-only credit movement."""

    __tablename__ = "credit_transactions"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_credit_transactions_user_idempotency"),
        CheckConstraint("amount > 0", name="ck_credit_transactions_amount_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    transaction_type: Mapped[CreditTransactionType] = mapped_column(
        SQLEnum(CreditTransactionType),
        nullable=False,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Payment reference or "report:<id>"
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True
    )
