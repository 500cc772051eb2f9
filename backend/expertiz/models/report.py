"""Vehicle report, media item and AI analysis result models."""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expertiz.database import Base

if TYPE_CHECKING:
    from expertiz.models.user import User

JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class ReportType(str, Enum):
    """Report type enumeration."""
    PAINT_ANALYSIS = "paint_analysis"
    DAMAGE_ASSESSMENT = "damage_assessment"
    ENGINE_SOUND_ANALYSIS = "engine_sound_analysis"
    VALUE_ESTIMATION = "value_estimation"
    FULL_REPORT = "full_report"


class ReportStatus(str, Enum):
    """Report status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportStatus.COMPLETED, ReportStatus.FAILED)

    @property
    def progress(self) -> int:
        """Coarse progress derived from the state alone."""
        return _PROGRESS[self]

    def can_transition_to(self, target: "ReportStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING: frozenset({ReportStatus.PROCESSING, ReportStatus.FAILED}),
    ReportStatus.PROCESSING: frozenset({ReportStatus.COMPLETED, ReportStatus.FAILED}),
    ReportStatus.COMPLETED: frozenset(),
    ReportStatus.FAILED: frozenset(),
}

_PROGRESS: dict[ReportStatus, int] = {
    ReportStatus.PENDING: 0,
    ReportStatus.PROCESSING: 50,
    ReportStatus.COMPLETED: 100,
    ReportStatus.FAILED: 100,
}


class RefundStatus(str, Enum):
    """Compensation state of a report's debit."""
    NONE = "none"
    PENDING = "pending"
    REFUNDED = "refunded"
    FAILED = "failed"


class MediaKind(str, Enum):
    """Media item kind enumeration."""
    EXTERIOR = "exterior"
    INTERIOR = "interior"
    ENGINE = "engine"
    DAMAGE = "damage"
    PAINT = "paint"
    AUDIO = "audio"

    @property
    def is_audio(self) -> bool:
        return self == MediaKind.AUDIO


class VehicleReport(Base):
    """One requested analysis and its outcome."""

    __tablename__ = "vehicle_reports"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    report_type: Mapped[ReportType] = mapped_column(SQLEnum(ReportType), nullable=False, index=True)
    status: Mapped[ReportStatus] = mapped_column(
        SQLEnum(ReportStatus),
        default=ReportStatus.PENDING,
        index=True
    )

    # Vehicle metadata
    vehicle_plate: Mapped[str | None] = mapped_column(String(20), nullable=True)
    vehicle_brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vehicle_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vehicle_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vehicle_color: Mapped[str | None] = mapped_column(String(50), nullable=True)
    mileage: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Outcome
    result_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Billing
    total_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    debit_transaction_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refund_transaction_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refund_status: Mapped[RefundStatus] = mapped_column(
        SQLEnum(RefundStatus),
        default=RefundStatus.NONE,
        index=True
    )
    refund_attempts: Mapped[int] = mapped_column(Integer, default=0)

    # Timestamps
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    analysis_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
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
    user: Mapped["User"] = relationship("User", back_populates="reports")
    media: Mapped[list["MediaItem"]] = relationship(
        "MediaItem",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MediaItem.id"
    )
    analysis_results: Mapped[list["AIAnalysisResult"]] = relationship(
        "AIAnalysisResult",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    @property
    def vehicle_info(self) -> dict[str, Any]:
        return {
            "plate": self.vehicle_plate,
            "brand": self.vehicle_brand,
            "model": self.vehicle_model,
            "year": self.vehicle_year,
            "color": self.vehicle_color,
            "mileage": self.mileage,
        }


class MediaItem(Base):
    """Uploaded image or audio file attached to a report."""

    __tablename__ = "vehicle_media"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("vehicle_reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    kind: Mapped[MediaKind] = mapped_column(SQLEnum(MediaKind), nullable=False, index=True)

    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_url: Mapped[str] = mapped_column(String(500), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    # SHA-256 of the uploaded bytes (hex).
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ai_processed: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    # Relationships
    report: Mapped["VehicleReport"] = relationship("VehicleReport", back_populates="media")


class AIAnalysisResult(Base):
    """Raw result of one successful analysis run."""

    __tablename__ = "ai_analysis_results"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("vehicle_reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    analysis_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    result_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    model_version: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    # Relationships
    report: Mapped["VehicleReport"] = relationship("VehicleReport", back_populates="analysis_results")
