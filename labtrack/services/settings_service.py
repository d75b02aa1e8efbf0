import json
import logging
from typing import Any

from labtrack.models.sheets import ADMINS_KEY, SETTINGS, SLACK_MODE_KEY
from labtrack.schemas.notification import NotificationMode
from labtrack.schemas.settings import LabSettings
from labtrack.services.table_store import TableStore

logger = logging.getLogger(__name__)


def read_settings(store: TableStore) -> dict[str, Any]:
    """Raw key -> value map; the first row wins for a repeated key."""
    values: dict[str, Any] = {}
    for row in store.rows(SETTINGS):
        if not row:
            continue
        key = str(row[0])
        if key not in values:
            values[key] = row[1] if len(row) > 1 else ""
    return values


def parse_admins(raw: Any) -> list[str]:
    """Admin emails from the JSON array in the ``admins`` cell; [] if unreadable."""
    if not isinstance(raw, str):
        return []
    try:
        admins = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unreadable admins setting")
        return []
    if not isinstance(admins, list):
        return []
    return [a for a in admins if isinstance(a, str)]


def parse_mode(raw: Any) -> NotificationMode:
    text = str(raw or "").strip().lower()
    if not text:
        return NotificationMode.ALL
    try:
        return NotificationMode(text)
    except ValueError:
        logger.warning("Unknown slack_mode %r, using 'all'", raw)
        return NotificationMode.ALL


def load_settings(store: TableStore) -> LabSettings:
    values = read_settings(store)
    return LabSettings(
        admins=parse_admins(values.get(ADMINS_KEY)),
        slack_mode=parse_mode(values.get(SLACK_MODE_KEY)),
        values=values,
    )


def save_setting(store: TableStore, key: str, value: Any) -> None:
    """Overwrite the first row with ``key`` or append a new one."""
    if isinstance(value, (list, dict)):
        value = json.dumps(value)
    elif value is None:
        value = ""
    key = str(key)
    with store.lock(SETTINGS):
        for position, row in enumerate(store.rows(SETTINGS)):
            if row and str(row[0]) == key:
                store.update(SETTINGS, position, [key, value])
                return
        store.append(SETTINGS, [key, value])
