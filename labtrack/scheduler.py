import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from labtrack.config import settings

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone=settings.TIMEZONE)


def register_jobs(target=None):
    """Add the digest and sweep jobs to ``target`` (the module scheduler by default)."""
    from labtrack.services.reminder_jobs import run_daily_digest, run_overdue_sweep

    target = target or scheduler
    target.add_job(
        run_daily_digest,
        trigger=CronTrigger(hour=settings.DIGEST_HOUR, minute=settings.DIGEST_MINUTE, timezone=settings.TIMEZONE),
        id="daily_digest",
        name="Send the daily Slack digest",
        replace_existing=True,
    )
    target.add_job(
        run_overdue_sweep,
        trigger=CronTrigger(
            hour=settings.OVERDUE_SWEEP_HOUR, minute=settings.OVERDUE_SWEEP_MINUTE, timezone=settings.TIMEZONE
        ),
        id="overdue_sweep",
        name="Alert on overdue checkouts",
        replace_existing=True,
    )
    return target


def start_scheduler():
    try:
        register_jobs()
        scheduler.start()
        logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}")


def stop_scheduler():
    try:
        if scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")
