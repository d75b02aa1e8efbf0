from typing import Any

from pydantic import BaseModel

from labtrack.schemas.notification import NotificationMode


class LabSettings(BaseModel):
    """Settings-table values resolved for one request."""

    admins: list[str] = []
    slack_mode: NotificationMode = NotificationMode.ALL
    values: dict[str, Any] = {}
