"""Vehicle report workflow.

A report is paid for up front: `create` debits the ledger and moves the
report to `processing`. `analyze` calls the AI provider outside of any
ledger lock and either completes the report or fails it and refunds the
debit. Refunds carry a per-report idempotency key, so the periodic retry
and the stale-report reaper can run them again without double-crediting.
"""
import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from expertiz.config import Settings, get_settings
from expertiz.exceptions import (
    AnalysisFailure,
    AnalysisTimeout,
    InsufficientCredit,
    InvalidReportType,
    InvalidStateTransition,
    MediaRejected,
    MediaRequired,
    NotFound,
    ReportNotEditable,
)
from expertiz.models.report import (
    AIAnalysisResult,
    MediaItem,
    MediaKind,
    RefundStatus,
    ReportStatus,
    ReportType,
    VehicleReport,
)
from expertiz.repositories.interfaces import ReportRepositoryInterface
from expertiz.services.analysis import AnalysisInvoker, MediaInput, get_profile
from expertiz.services.credit_service import CreditService
from expertiz.services.notification_service import NotificationService, report_type_name
from expertiz.utils.storage import StorageService

logger = logging.getLogger(__name__)

VEHICLE_FIELDS = {
    "plate": "vehicle_plate",
    "brand": "vehicle_brand",
    "model": "vehicle_model",
    "year": "vehicle_year",
    "color": "vehicle_color",
    "mileage": "mileage",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def debit_key(report_id: int) -> str:
    return f"report:{report_id}:debit"


def refund_key(report_id: int) -> str:
    return f"report:{report_id}:refund"


def parse_report_type(value: ReportType | str) -> ReportType:
    if isinstance(value, ReportType):
        return value
    try:
        return ReportType(str(value).lower())
    except ValueError:
        raise InvalidReportType(str(value))


def media_too_large(filename: str, max_size: int) -> MediaRejected:
    return MediaRejected(
        "too_large",
        f"{filename} is too large. Maximum size: {max_size // 1024 // 1024}MB",
        filename,
    )


@dataclass
class MediaUpload:
    """One file received for a report, not yet stored."""
    kind: MediaKind
    filename: str
    content_type: str | None
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ReportStatusView:
    """Status projection returned to polling clients."""
    id: int
    status: ReportStatus
    progress: int
    result_payload: dict[str, Any] | None
    error: str | None
    refund_status: RefundStatus
    credit_refunded: Decimal

    @classmethod
    def from_report(cls, report: VehicleReport) -> "ReportStatusView":
        refunded = report.refund_status == RefundStatus.REFUNDED
        return cls(
            id=report.id,
            status=report.status,
            progress=report.status.progress,
            result_payload=report.result_payload if report.status == ReportStatus.COMPLETED else None,
            error=report.error_message if report.status == ReportStatus.FAILED else None,
            refund_status=report.refund_status,
            credit_refunded=report.total_cost if refunded else Decimal("0.00"),
        )


@dataclass
class SweepResult:
    """Outcome of one maintenance sweep."""
    examined: int = 0
    refunded: int = 0
    pending: int = 0
    escalated: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "examined": self.examined,
            "refunded": self.refunded,
            "pending": self.pending,
            "escalated": self.escalated,
        }


class ReportService:
    """Orchestrates report creation, media intake, analysis and compensation."""

    def __init__(
        self,
        reports: ReportRepositoryInterface,
        credits: CreditService,
        notifications: NotificationService,
        invoker: AnalysisInvoker,
        storage: StorageService,
        settings: Settings | None = None,
    ):
        self.reports = reports
        self.credits = credits
        self.notifications = notifications
        self.invoker = invoker
        self.storage = storage
        self.settings = settings or get_settings()

    def price_for(self, report_type: ReportType) -> Decimal:
        return self.settings.report_prices[report_type.value]

    def pricing(self) -> dict[str, Decimal]:
        return dict(self.settings.report_prices)

    @staticmethod
    def _transition(report: VehicleReport, target: ReportStatus) -> None:
        if not report.status.can_transition_to(target):
            raise InvalidStateTransition(report.status.value, target.value)
        report.status = target
        report.last_activity_at = _utcnow()

    async def _get_owned(
        self, user_id: int, report_id: int, for_update: bool = False
    ) -> VehicleReport:
        if for_update:
            report = await self.reports.get_for_update(report_id)
        else:
            report = await self.reports.get(report_id)
        # Other users' reports are indistinguishable from missing ones.
        if report is None or report.user_id != user_id:
            raise NotFound("Report", report_id)
        return report

    # Lifecycle

    async def create(
        self,
        user_id: int,
        report_type: ReportType | str,
        vehicle: dict[str, Any] | None = None,
    ) -> VehicleReport:
        """Start a report: price it, debit the user and move it to processing.

        Raises InsufficientCredit (nothing is persisted) or InvalidReportType.
        """
        report_type = parse_report_type(report_type)
        price = self.price_for(report_type)
        vehicle = vehicle or {}

        report = VehicleReport(
            user_id=user_id,
            report_type=report_type,
            status=ReportStatus.PENDING,
            total_cost=price,
            refund_status=RefundStatus.NONE,
            refund_attempts=0,
            last_activity_at=_utcnow(),
            **{column: vehicle.get(key) for key, column in VEHICLE_FIELDS.items()},
        )
        report = await self.reports.add(report)

        try:
            entry = await self.credits.debit(
                user_id,
                price,
                reason=f"{report_type_name(report_type).capitalize()} report #{report.id}",
                reference_id=f"report:{report.id}",
                idempotency_key=debit_key(report.id),
            )
        except InsufficientCredit:
            await self.reports.delete(report)
            logger.info(
                "Report for user %s not started: insufficient credit for %s", user_id, price
            )
            raise

        report.debit_transaction_id = entry.transaction.id
        self._transition(report, ReportStatus.PROCESSING)
        await self.reports.save(report)
        logger.info("Report %s (%s) started for user %s", report.id, report_type.value, user_id)

        await self.notifications.notify_report_processing(
            user_id, report_type, report.vehicle_plate
        )
        return report

    def max_size_for(self, kind: MediaKind) -> int:
        if kind.is_audio:
            return self.settings.max_audio_size
        return self.settings.max_image_size

    def _validate_upload(self, upload: MediaUpload) -> None:
        if upload.size == 0:
            raise MediaRejected("empty", f"{upload.filename} is empty", upload.filename)

        content_type = (upload.content_type or "").lower()
        if upload.kind.is_audio:
            allowed = self.settings.allowed_audio_types_list
        else:
            allowed = self.settings.allowed_image_types_list
        max_size = self.max_size_for(upload.kind)

        if content_type not in allowed:
            raise MediaRejected(
                "unsupported_type",
                f"{upload.filename}: unsupported type {content_type or 'unknown'} for "
                f"{upload.kind.value} media. Allowed: {', '.join(allowed)}",
                upload.filename,
            )
        if upload.size > max_size:
            raise media_too_large(upload.filename, max_size)

    async def attach_media(
        self, user_id: int, report_id: int, uploads: list[MediaUpload]
    ) -> int:
        """Validate and store uploaded media; returns the accepted count.

        The whole batch is rejected if any item is invalid.
        """
        report = await self._get_owned(user_id, report_id, for_update=True)
        if report.status.is_terminal:
            raise ReportNotEditable(report.id, report.status.value)

        if not uploads:
            raise MediaRejected("empty", "No files were uploaded")

        existing = await self.reports.count_media(report.id)
        limit = self.settings.max_media_per_report
        if existing + len(uploads) > limit:
            raise MediaRejected(
                "too_many",
                f"A report can hold at most {limit} media files ({existing} already attached)",
            )

        for upload in uploads:
            self._validate_upload(upload)

        items: list[MediaItem] = []
        try:
            for upload in uploads:
                relative_path, _ = await self.storage.save_file(
                    content=upload.content,
                    original_filename=upload.filename,
                    subfolder=f"reports/{report.id}",
                )
                items.append(
                    MediaItem(
                        report_id=report.id,
                        kind=upload.kind,
                        file_path=relative_path,
                        file_url=self.storage.get_file_url(relative_path),
                        original_filename=upload.filename,
                        mime_type=(upload.content_type or "").lower(),
                        file_size=upload.size,
                        content_hash=hashlib.sha256(upload.content).hexdigest(),
                        ai_processed=False,
                    )
                )
        except OSError:
            for item in items:
                await self.storage.delete_file(item.file_path)
            raise

        await self.reports.add_media(items)
        report.last_activity_at = _utcnow()
        await self.reports.save(report)
        logger.info("Attached %s media item(s) to report %s", len(items), report.id)
        return len(items)

    async def analyze(self, user_id: int, report_id: int) -> ReportStatusView:
        """Run the AI analysis for a processing report.

        Analysis failures are not raised: the report is failed, the debit
        refunded and the failed status returned.
        """
        report = await self._get_owned(user_id, report_id, for_update=True)
        if report.status != ReportStatus.PROCESSING:
            raise InvalidStateTransition(report.status.value, ReportStatus.COMPLETED.value)

        profile = get_profile(report.report_type)
        media = await self.reports.list_media(report.id)
        missing = profile.missing_media(media)
        if missing:
            raise MediaRequired(
                f"{profile.name} requires {' and '.join(missing)} media before analysis"
            )

        # Committed before the provider call so a concurrent sweep sees the
        # report as busy rather than abandoned.
        report.analysis_started_at = report.last_activity_at = _utcnow()
        await self.reports.save(report)
        await self.reports.commit()

        timeout = self.settings.analysis_timeout
        started = time.monotonic()
        failure: AnalysisFailure | None = None
        outcome = None
        try:
            outcome = await asyncio.wait_for(
                self.invoker.analyze(
                    report.report_type,
                    report.vehicle_info,
                    [MediaInput.from_item(item) for item in media],
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            failure = AnalysisTimeout(timeout)
        except AnalysisFailure as e:
            failure = e
        except Exception as e:
            logger.exception("Unexpected error while analyzing report %s", report.id)
            failure = AnalysisFailure(f"Unexpected analysis error: {e.__class__.__name__}")
        elapsed_ms = int((time.monotonic() - started) * 1000)

        # Re-read under lock: the reaper may have failed the report meanwhile.
        report = await self._get_owned(user_id, report_id, for_update=True)
        if report.status != ReportStatus.PROCESSING:
            logger.warning(
                "Report %s became %s during analysis, discarding result",
                report.id,
                report.status.value,
            )
            return ReportStatusView.from_report(report)

        if failure is not None:
            logger.warning("Analysis of report %s failed: %s", report.id, failure.message)
            await self._fail_and_compensate(report, failure.message)
            return ReportStatusView.from_report(report)

        await self.reports.add_analysis_result(
            AIAnalysisResult(
                report_id=report.id,
                analysis_type=report.report_type.value,
                confidence_score=outcome.confidence,
                result_data=outcome.result,
                processing_time_ms=elapsed_ms,
                model_version=outcome.model_version,
            )
        )
        await self.reports.mark_media_processed(report.id)
        report.result_payload = outcome.result
        report.error_message = None
        self._transition(report, ReportStatus.COMPLETED)
        report.completed_at = _utcnow()
        await self.reports.save(report)
        logger.info("Report %s completed in %sms", report.id, elapsed_ms)

        await self.notifications.notify_report_completed(
            report.user_id, report.id, report.report_type, report.vehicle_plate
        )
        return ReportStatusView.from_report(report)

    async def get_status(self, user_id: int, report_id: int) -> ReportStatusView:
        report = await self._get_owned(user_id, report_id)
        return ReportStatusView.from_report(report)

    async def get(self, user_id: int, report_id: int) -> tuple[VehicleReport, list[MediaItem]]:
        report = await self._get_owned(user_id, report_id)
        media = await self.reports.list_media(report.id)
        return report, media

    async def list_reports(
        self, user_id: int, page: int = 1, page_size: int = 20
    ) -> tuple[list[VehicleReport], int]:
        return await self.reports.list_for_user(user_id, page, page_size)

    async def delete(self, user_id: int, report_id: int) -> None:
        """Delete a report with its media rows; stored files are removed best-effort."""
        report = await self._get_owned(user_id, report_id, for_update=True)
        media = await self.reports.list_media(report.id)
        await self.reports.delete(report)
        for item in media:
            if not await self.storage.delete_file(item.file_path):
                logger.warning("Could not delete media file %s", item.file_path)
        logger.info("Report %s deleted by user %s", report_id, user_id)

    # Compensation

    async def _fail_and_compensate(self, report: VehicleReport, reason: str) -> None:
        self._transition(report, ReportStatus.FAILED)
        report.error_message = reason
        report.completed_at = _utcnow()
        report.refund_status = RefundStatus.PENDING
        await self.reports.save(report)

        refunded = await self._refund(report)
        await self.notifications.notify_report_failed(
            report.user_id,
            report.id,
            report.report_type,
            report.vehicle_plate,
            report.total_cost if refunded else None,
        )

    async def _refund(self, report: VehicleReport, notify: bool = False) -> bool:
        """Try to refund a failed report once; returns True when refunded."""
        report.refund_attempts = (report.refund_attempts or 0) + 1
        try:
            entry = await self.credits.refund(
                report.user_id,
                report.total_cost,
                reason=f"Refund for failed report #{report.id}",
                reference_id=f"report:{report.id}",
                idempotency_key=refund_key(report.id),
                notify=notify,
            )
        except Exception:
            logger.error(
                "Refund of %s credits for report %s failed (attempt %s/%s)",
                report.total_cost,
                report.id,
                report.refund_attempts,
                self.settings.refund_max_attempts,
                exc_info=True,
            )
            if report.refund_attempts >= self.settings.refund_max_attempts:
                report.refund_status = RefundStatus.FAILED
                logger.critical(
                    "Giving up refunding report %s: %s credits owed to user %s need manual action",
                    report.id,
                    report.total_cost,
                    report.user_id,
                )
            await self.reports.save(report)
            return False

        report.refund_status = RefundStatus.REFUNDED
        report.refund_transaction_id = entry.transaction.id
        await self.reports.save(report)
        logger.info("Refunded %s credits for report %s", report.total_cost, report.id)
        return True

    def _analysis_in_flight(self, report: VehicleReport, now: datetime) -> bool:
        if report.analysis_started_at is None:
            return False
        deadline = _as_aware(report.analysis_started_at) + timedelta(
            seconds=self.settings.analysis_timeout
        )
        return now < deadline

    async def reap_stale(self, now: datetime | None = None, limit: int = 100) -> SweepResult:
        """Fail and refund processing reports that saw no activity for too long."""
        now = now or _utcnow()
        cutoff = now - timedelta(seconds=self.settings.report_stale_after_seconds)
        result = SweepResult()

        for candidate in await self.reports.list_stale_processing(cutoff, limit):
            report = await self.reports.get_for_update(candidate.id)
            # Re-check under lock; it may have moved on since the scan.
            if (
                report is None
                or report.status != ReportStatus.PROCESSING
                or _as_aware(report.last_activity_at) >= cutoff
                or self._analysis_in_flight(report, now)
            ):
                continue
            result.examined += 1
            logger.warning(
                "Report %s abandoned (no activity since %s), failing it",
                report.id,
                report.last_activity_at,
            )
            await self._fail_and_compensate(report, "Report abandoned before analysis completed")
            if report.refund_status == RefundStatus.REFUNDED:
                result.refunded += 1
            elif report.refund_status == RefundStatus.FAILED:
                result.escalated += 1
            else:
                result.pending += 1

        return result

    async def retry_pending_refunds(self, limit: int = 100) -> SweepResult:
        """Re-run refunds that previously failed."""
        result = SweepResult()

        for candidate in await self.reports.list_pending_refunds(limit):
            report = await self.reports.get_for_update(candidate.id)
            if report is None or report.refund_status != RefundStatus.PENDING:
                continue
            result.examined += 1
            if await self._refund(report, notify=True):
                result.refunded += 1
            elif report.refund_status == RefundStatus.FAILED:
                result.escalated += 1
            else:
                result.pending += 1

        return result
