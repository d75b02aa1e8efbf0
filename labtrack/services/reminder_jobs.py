"""Time-driven entry points: the daily digest and the morning overdue sweep.

Both only read aggregates (the digest also drains its queue), so they run
without coordinating with request handling.
"""
import logging
from datetime import date

from labtrack.database import get_store
from labtrack.schemas.notification import DigestReport, Notification, NotificationMode
from labtrack.services import clock, report_service
from labtrack.services.notification_service import NotificationRouter, overdue_alert
from labtrack.services.settings_service import load_settings
from labtrack.services.slack_service import SlackTransport

logger = logging.getLogger(__name__)


def default_router() -> NotificationRouter:
    return NotificationRouter(get_store(), SlackTransport())


def overdue_sweep(router: NotificationRouter, today: date | None = None) -> Notification | None:
    """Send one high-priority alert listing overdue checkouts, if there are any."""
    today = today or clock.today()
    overdue = report_service.overdue_checkouts(router.store, today)
    if not overdue:
        logger.info("Overdue sweep for %s: nothing overdue", today)
        return None
    alert = overdue_alert(overdue, today)
    outcome = router.dispatch(alert)
    logger.info("Overdue sweep for %s: %d overdue, %s", today, len(overdue), outcome.value)
    return alert


def daily_digest(router: NotificationRouter, today: date | None = None) -> DigestReport | None:
    """Compile the digest unless notifications are switched off."""
    if load_settings(router.store).slack_mode == NotificationMode.OFF:
        logger.info("Notifications are off; skipping daily digest")
        return None
    return router.compile_digest(today)


def run_overdue_sweep():
    """Scheduler entry point."""
    try:
        overdue_sweep(default_router())
    except Exception as e:
        logger.error(f"Error in overdue sweep job: {e}")


def run_daily_digest():
    """Scheduler entry point."""
    try:
        daily_digest(default_router())
    except Exception as e:
        logger.error(f"Error in daily digest job: {e}")
