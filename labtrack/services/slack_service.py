import logging
from typing import Protocol

import httpx

from labtrack.config import settings
from labtrack.schemas.notification import Notification
from labtrack.services import clock

logger = logging.getLogger(__name__)

# Slack rejects sections with more than 10 fields
_MAX_FIELDS = 10


class NotificationTransport(Protocol):
    def deliver(self, notification: Notification) -> bool: ...


def build_payload(notification: Notification) -> dict:
    blocks = [
        {"type": "section", "text": {"type": "mrkdwn", "text": f"{notification.icon} *{notification.title}*"}},
    ]
    if notification.body:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": notification.body}})
    for i in range(0, len(notification.fields), _MAX_FIELDS):
        chunk = notification.fields[i:i + _MAX_FIELDS]
        blocks.append({"type": "section", "fields": [{"type": "mrkdwn", "text": f} for f in chunk]})
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"{settings.APP_NAME} · {clock.timestamp()}"}],
    })
    return {"text": f"{notification.icon} {notification.title}", "blocks": blocks}


class SlackTransport:
    """Posts notifications to a Slack incoming webhook. Never raises."""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None, client: httpx.Client | None = None):
        self.webhook_url = settings.SLACK_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._client = client

    def deliver(self, notification: Notification) -> bool:
        if not self.webhook_url:
            logger.debug("Slack webhook not configured; skipping %r", notification.title)
            return False

        payload = build_payload(notification)
        try:
            if self._client is not None:
                resp = self._client.post(self.webhook_url, json=payload)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    resp = client.post(self.webhook_url, json=payload)
        except Exception as e:
            logger.error(f"Slack delivery failed for {notification.title!r}: {e}")
            return False

        if not resp.is_success:
            logger.error("Slack rejected %r: %s %s", notification.title, resp.status_code, resp.text[:200])
        return resp.is_success
