"""In-process scheduler for the worker role."""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from holdfast.config import BookingSettings
from holdfast.jobs.expire_task import ExpireHoldsTask
from holdfast.jobs.idempotency_cleanup import IdempotencyCleanupTask
from holdfast.jobs.outbox_publisher import OutboxPublisher

EXPIRE_JOB_ID = "expire_holds"
IDEMPOTENCY_JOB_ID = "idempotency_cleanup"
OUTBOX_JOB_ID = "outbox_publish"


def build_scheduler(
    settings: BookingSettings,
    expire_task: ExpireHoldsTask,
    cleanup_task: IdempotencyCleanupTask,
    publisher: OutboxPublisher,
) -> BackgroundScheduler:
    """Register the periodic jobs; the caller starts and shuts it down."""
    scheduler = BackgroundScheduler(timezone="UTC")
    # One instance per job: a slow tick is skipped, not stacked.
    job_defaults = {"max_instances": 1, "coalesce": True}
    scheduler.add_job(
        expire_task.run_once,
        "interval",
        seconds=settings.expire_interval_sec,
        id=EXPIRE_JOB_ID,
        **job_defaults,
    )
    scheduler.add_job(
        cleanup_task.run_once,
        "interval",
        minutes=settings.idempotency_sweep_minutes,
        id=IDEMPOTENCY_JOB_ID,
        **job_defaults,
    )
    scheduler.add_job(
        publisher.tick,
        "interval",
        seconds=settings.outbox_poll_sec,
        id=OUTBOX_JOB_ID,
        **job_defaults,
    )
    return scheduler
