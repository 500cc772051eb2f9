"""Celery application configuration."""
from celery import Celery
from celery.signals import after_setup_logger

from expertiz.config import get_settings
from expertiz.logger import setup_logger

settings = get_settings()

celery_app = Celery(
    "expertiz",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["expertiz.tasks.maintenance"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,  # 10 minutes hard limit
    task_soft_time_limit=300,  # 5 minutes soft limit

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=3600,  # 1 hour

    # Compensation sweeps
    beat_schedule={
        "reap-stale-reports": {
            "task": "expertiz.tasks.maintenance.reap_stale_reports",
            "schedule": float(settings.reaper_interval_seconds),
        },
        "retry-pending-refunds": {
            "task": "expertiz.tasks.maintenance.retry_pending_refunds",
            "schedule": float(settings.refund_retry_interval_seconds),
        },
    },
)


@after_setup_logger.connect
def _configure_logging(**kwargs) -> None:
    setup_logger(level=settings.log_level)
