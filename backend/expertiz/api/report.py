"""Vehicle report API routes."""
from fastapi import APIRouter, File, Form, Query, Request, UploadFile, status

from expertiz.api.deps import CurrentUser, ReportServiceDep
from expertiz.models.report import MediaKind
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
from expertiz.services.report_service import MediaUpload, media_too_large
from expertiz.utils.rate_limiter import DEFAULT_LIMIT, UPLOAD_LIMIT, limiter

router = APIRouter()

READ_CHUNK_SIZE = 1024 * 1024


async def _read_upload(file: UploadFile, max_size: int) -> bytes:
    """Read an upload, giving up as soon as it exceeds `max_size`."""
    chunks = []
    size = 0
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > max_size:
            raise media_too_large(file.filename or "upload", max_size)
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/pricing", response_model=PricingResponse)
async def get_pricing(report_service: ReportServiceDep):
    """Credit price of each report type."""
    return PricingResponse(prices=report_service.pricing())


@router.post("/start", response_model=ReportStartResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(DEFAULT_LIMIT)
async def start_report(
    request: Request,
    report_data: ReportStart,
    current_user: CurrentUser,
    report_service: ReportServiceDep,
):
    """Start a report and pay for it (402 when credits are insufficient)."""
    report = await report_service.create(
        current_user.id,
        report_data.report_type,
        report_data.vehicle.model_dump(),
    )
    return ReportStartResponse(
        report_id=report.id,
        status=report.status,
        total_cost=report.total_cost,
    )


@router.post("/{report_id}/upload", response_model=MediaUploadResponse)
@limiter.limit(UPLOAD_LIMIT)
async def upload_media(
    request: Request,
    report_id: int,
    current_user: CurrentUser,
    report_service: ReportServiceDep,
    files: list[UploadFile] = File(...),
    kind: MediaKind = Form(...),
):
    """Attach photos or an engine recording to a report."""
    uploads = [
        MediaUpload(
            kind=kind,
            filename=file.filename or f"{kind.value}.bin",
            content_type=file.content_type,
            content=await _read_upload(file, report_service.max_size_for(kind)),
        )
        for file in files
    ]
    accepted = await report_service.attach_media(current_user.id, report_id, uploads)
    return MediaUploadResponse(accepted=accepted)


@router.post("/{report_id}/analyze", response_model=ReportStatusResponse)
@limiter.limit(DEFAULT_LIMIT)
async def analyze_report(
    request: Request,
    report_id: int,
    current_user: CurrentUser,
    report_service: ReportServiceDep,
):
    """Run the AI analysis. A failed analysis answers 200 with the refund."""
    view = await report_service.analyze(current_user.id, report_id)
    return ReportStatusResponse.model_validate(view)


@router.get("/{report_id}/status", response_model=ReportStatusResponse)
async def get_report_status(
    report_id: int,
    current_user: CurrentUser,
    report_service: ReportServiceDep,
):
    """Poll report status."""
    view = await report_service.get_status(current_user.id, report_id)
    return ReportStatusResponse.model_validate(view)


@router.get("", response_model=ReportListResponse)
async def list_reports(
    current_user: CurrentUser,
    report_service: ReportServiceDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """List current user's reports."""
    reports, total = await report_service.list_reports(current_user.id, page, page_size)
    return ReportListResponse(
        reports=[ReportBrief.model_validate(r) for r in reports],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: int,
    current_user: CurrentUser,
    report_service: ReportServiceDep,
):
    """Get report details with its media."""
    report, media = await report_service.get(current_user.id, report_id)
    return ReportResponse(
        id=report.id,
        report_type=report.report_type,
        status=report.status,
        progress=report.status.progress,
        vehicle=VehicleInfo(**report.vehicle_info),
        result_payload=report.result_payload,
        error_message=report.error_message,
        total_cost=report.total_cost,
        refund_status=report.refund_status,
        media=[MediaItemResponse.model_validate(m) for m in media],
        created_at=report.created_at,
        updated_at=report.updated_at,
        completed_at=report.completed_at,
    )


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: int,
    current_user: CurrentUser,
    report_service: ReportServiceDep,
):
    """Delete a report, its media and AI results."""
    await report_service.delete(current_user.id, report_id)
