"""Report schemas for request/response validation."""
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from expertiz.models.report import MediaKind, RefundStatus, ReportStatus, ReportType


class VehicleInfo(BaseModel):
    """Vehicle metadata supplied when a report is started."""
    plate: str | None = Field(None, max_length=20)
    brand: str | None = Field(None, max_length=100)
    model: str | None = Field(None, max_length=100)
    year: int | None = Field(None, ge=1900, le=2100)
    color: str | None = Field(None, max_length=50)
    mileage: int | None = Field(None, ge=0)


class ReportStart(BaseModel):
    """Schema for starting a report.

    `report_type` stays a plain string so unknown types reach the service
    and surface as INVALID_REPORT_TYPE.
    """
    report_type: str = Field(..., max_length=50)
    vehicle: VehicleInfo = Field(default_factory=VehicleInfo)


class ReportStartResponse(BaseModel):
    report_id: int
    status: ReportStatus
    total_cost: Decimal


class MediaUploadResponse(BaseModel):
    accepted: int


class MediaItemResponse(BaseModel):
    """Schema for an attached media item."""
    id: int
    kind: MediaKind
    file_url: str
    original_filename: str
    mime_type: str
    file_size: int
    ai_processed: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ReportStatusResponse(BaseModel):
    """Schema for status polling."""
    id: int
    status: ReportStatus
    progress: int
    result_payload: dict[str, Any] | None = None
    error: str | None = None
    refund_status: RefundStatus
    credit_refunded: Decimal

    model_config = {"from_attributes": True}


class ReportBrief(BaseModel):
    """Schema for report list items."""
    id: int
    report_type: ReportType
    status: ReportStatus
    vehicle_plate: str | None
    vehicle_brand: str | None
    vehicle_model: str | None
    total_cost: Decimal
    refund_status: RefundStatus
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class ReportResponse(BaseModel):
    """Schema for report details."""
    id: int
    report_type: ReportType
    status: ReportStatus
    progress: int
    vehicle: VehicleInfo
    result_payload: dict[str, Any] | None
    error_message: str | None
    total_cost: Decimal
    refund_status: RefundStatus
    media: list[MediaItemResponse]
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None


class ReportListResponse(BaseModel):
    """Schema for report list response."""
    reports: list[ReportBrief]
    total: int
    page: int
    page_size: int


class PricingResponse(BaseModel):
    prices: dict[str, Decimal]
