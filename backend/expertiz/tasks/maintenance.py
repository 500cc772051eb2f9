"""Periodic compensation sweeps.

Both sweeps run in their own session and commit once at the end; a crash
mid-sweep rolls everything back and the next run starts over. Refunds are
idempotent per report, so repeating a sweep never double-credits.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from expertiz.database import async_session_maker, engine
from expertiz.services.factory import build_report_service
from expertiz.services.report_service import ReportService, SweepResult
from expertiz.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def _run_async(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def run_sweep(
    sweep: Callable[[ReportService], Awaitable[SweepResult]],
    session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
) -> dict:
    async with session_maker() as db:
        try:
            result = await sweep(build_report_service(db))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return result.as_dict()


async def _sweep_once(sweep: Callable[[ReportService], Awaitable[SweepResult]]) -> dict:
    try:
        return await run_sweep(sweep)
    finally:
        # Pooled connections are bound to this task's event loop.
        await engine.dispose()


@celery_app.task
def reap_stale_reports(limit: int = 100) -> dict:
    """Fail processing reports that were abandoned and refund them."""
    result = _run_async(
        _sweep_once(lambda service: service.reap_stale(datetime.now(timezone.utc), limit=limit))
    )
    if result["examined"]:
        logger.info("Stale report sweep: %s", result)
    return result


@celery_app.task
def retry_pending_refunds(limit: int = 100) -> dict:
    """Retry refunds of failed reports that could not be refunded yet."""
    result = _run_async(_sweep_once(lambda service: service.retry_pending_refunds(limit=limit)))
    if result["examined"]:
        logger.info("Refund retry sweep: %s", result)
    return result
