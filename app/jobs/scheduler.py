"""APScheduler setup and job registration."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from app.jobs.deposit_reconciliation import deposit_reconciliation
from app.jobs.promotion_expiry import promotion_expiry

scheduler = AsyncIOScheduler(timezone=settings.timezone)


def register_jobs() -> None:
    """Register all periodic jobs if not already present."""
    if scheduler.get_job("promotion_expiry") is None:
        scheduler.add_job(
            promotion_expiry,
            CronTrigger(minute="*/15", timezone=settings.timezone),
            id="promotion_expiry",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    if scheduler.get_job("deposit_reconciliation") is None:
        scheduler.add_job(
            deposit_reconciliation,
            IntervalTrigger(
                minutes=max(1, settings.reconcile_interval_minutes),
                timezone=settings.timezone,
            ),
            id="deposit_reconciliation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
