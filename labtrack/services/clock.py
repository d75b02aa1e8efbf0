from datetime import date, datetime
from zoneinfo import ZoneInfo

from labtrack.config import settings


def now() -> datetime:
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def today() -> date:
    return now().date()


def timestamp() -> str:
    return now().strftime("%Y-%m-%d %H:%M:%S")


def parse_day(value) -> date | None:
    """Date part of a cell value ("2024-05-01", "2024-05-01T10:00", date); None if unreadable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()[:10]
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None
