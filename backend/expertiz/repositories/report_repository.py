"""Vehicle report repository backed by SQLAlchemy."""
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from expertiz.models.report import (
    AIAnalysisResult,
    MediaItem,
    RefundStatus,
    ReportStatus,
    VehicleReport,
)


class ReportRepository:
    """Data access layer for reports, their media and AI results."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, report: VehicleReport) -> VehicleReport:
        self.db.add(report)
        await self.db.flush()
        await self.db.refresh(report)
        return report

    async def get(self, report_id: int) -> VehicleReport | None:
        result = await self.db.execute(
            select(VehicleReport).where(VehicleReport.id == report_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, report_id: int) -> VehicleReport | None:
        """Lock the report row so state transitions do not race the sweeps."""
        result = await self.db.execute(
            select(VehicleReport)
            .where(VehicleReport.id == report_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def save(self, report: VehicleReport) -> VehicleReport:
        await self.db.flush()
        return report

    async def commit(self) -> None:
        """Commit the work so far, making it visible to the sweeps."""
        await self.db.commit()

    async def delete(self, report: VehicleReport) -> None:
        # Media and AI results go with it via ON DELETE CASCADE.
        await self.db.delete(report)
        await self.db.flush()

    async def list_for_user(
        self, user_id: int, page: int, page_size: int
    ) -> tuple[list[VehicleReport], int]:
        total_result = await self.db.execute(
            select(func.count()).select_from(VehicleReport).where(VehicleReport.user_id == user_id)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(VehicleReport)
            .where(VehicleReport.user_id == user_id)
            .order_by(VehicleReport.created_at.desc(), VehicleReport.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def add_media(self, items: list[MediaItem]) -> list[MediaItem]:
        self.db.add_all(items)
        await self.db.flush()
        return items

    async def list_media(self, report_id: int) -> list[MediaItem]:
        result = await self.db.execute(
            select(MediaItem).where(MediaItem.report_id == report_id).order_by(MediaItem.id)
        )
        return list(result.scalars().all())

    async def count_media(self, report_id: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(MediaItem).where(MediaItem.report_id == report_id)
        )
        return result.scalar() or 0

    async def mark_media_processed(self, report_id: int) -> None:
        await self.db.execute(
            update(MediaItem)
            .where(MediaItem.report_id == report_id)
            .values(ai_processed=True)
            .execution_options(synchronize_session=False)
        )

    async def add_analysis_result(self, result: AIAnalysisResult) -> AIAnalysisResult:
        self.db.add(result)
        await self.db.flush()
        return result

    async def list_stale_processing(self, cutoff: datetime, limit: int) -> list[VehicleReport]:
        result = await self.db.execute(
            select(VehicleReport)
            .where(
                VehicleReport.status == ReportStatus.PROCESSING,
                VehicleReport.last_activity_at < cutoff,
            )
            .order_by(VehicleReport.last_activity_at)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_pending_refunds(self, limit: int) -> list[VehicleReport]:
        result = await self.db.execute(
            select(VehicleReport)
            .where(
                VehicleReport.status == ReportStatus.FAILED,
                VehicleReport.refund_status == RefundStatus.PENDING,
            )
            .order_by(VehicleReport.updated_at)
            .limit(limit)
        )
        return list(result.scalars().all())
