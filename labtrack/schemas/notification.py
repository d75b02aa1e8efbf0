from enum import Enum

from pydantic import BaseModel


class Priority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


class NotificationMode(str, Enum):
    ALL = "all"
    IMPORTANT = "important"
    DIGEST = "digest"
    OFF = "off"


class Outcome(str, Enum):
    DROPPED = "dropped"
    DELIVERED = "delivered"
    QUEUED = "queued"
    QUEUED_AND_DELIVERED = "queued_and_delivered"


class Notification(BaseModel):
    icon: str
    title: str
    body: str = ""
    fields: list[str] = []  # "*Label*\nvalue" mrkdwn snippets
    priority: Priority = Priority.NORMAL


class DigestReport(BaseModel):
    date: str
    urgent_orders: int = 0
    pending_orders: int = 0
    overdue_checkouts: int = 0
    low_stock: int = 0
    queued: dict[str, int] = {}
    activity: dict[str, int] = {}
    delivered: bool = False
    text: str = ""
