from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from ..config import settings

logger = structlog.get_logger()

scheduler = BackgroundScheduler(timezone="UTC")


def start_scheduler(job) -> BackgroundScheduler:
    """Register the daily cleanup and start the scheduler (idempotent)."""
    scheduler.add_job(
        func=job,
        trigger=CronTrigger(hour=settings.CLEANUP_HOUR, minute=0, timezone="UTC"),
        id="cleanup_expired_invitations",
        name="Remove expired invitations and sessions",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
        logger.info("scheduler_started", cleanup_hour=settings.CLEANUP_HOUR)
    return scheduler


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
