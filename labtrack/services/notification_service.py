import logging
import threading
from datetime import date

from labtrack.models.sheets import PENDING_NOTIFICATIONS
from labtrack.schemas.notification import DigestReport, Notification, NotificationMode, Outcome, Priority
from labtrack.services import clock, report_service
from labtrack.services.row_codec import decode, encode
from labtrack.services.settings_service import load_settings
from labtrack.services.slack_service import NotificationTransport
from labtrack.services.table_store import TableStore

logger = logging.getLogger(__name__)

DIGEST_ORDER_LINES = 8
DIGEST_LOW_STOCK_LINES = 6


def _or_dash(value) -> str:
    text = str(value if value is not None else "").strip()
    return text or "—"


def _field(label: str, value) -> str:
    return f"*{label}*\n{_or_dash(value)}"


def _qty(record: dict) -> str:
    return f"{_or_dash(record.get('qty'))} {record.get('unit') or ''}".strip()


# --- Event builders ---

def item_added(item: dict, actor_name: str) -> Notification:
    return Notification(
        icon="📦",
        title=f"New Item Added: {item.get('name')}",
        fields=[
            _field("Category", item.get("cat")),
            _field("Qty", f"{item.get('qty') or 0} {item.get('unit') or ''}".strip()),
            _field("Location", item.get("loc")),
            _field("Added by", actor_name),
        ],
    )


def delivery_received(delivery: dict, actor_name: str) -> Notification:
    return Notification(
        icon="🚚",
        title=f"Delivery Received: {delivery.get('item')}",
        fields=[
            _field("Qty", _qty(delivery)),
            _field("Supplier", delivery.get("from")),
            _field("Received by", delivery.get("receivedBy") or actor_name),
            _field("Tracking", delivery.get("tracking")),
        ],
    )


def item_checked_out(checkout: dict) -> Notification:
    return Notification(
        icon="🔑",
        title=f"Item Checked Out: {checkout.get('item')}",
        fields=[
            _field("Person", checkout.get("user")),
            _field("Date", checkout.get("out")),
            _field("Return by", checkout.get("ret")),
        ],
    )


def item_returned(checkout: dict) -> Notification:
    return Notification(
        icon="✅",
        title=f"Item Returned: {checkout.get('item')}",
        fields=[_field("Returned by", checkout.get("user"))],
    )


def order_requested(order: dict, actor_name: str) -> Notification:
    link = order.get("link")
    return Notification(
        icon="🛒",
        title=f"New Order Request: {order.get('item')}",
        body=f"<{link}|Purchase Link>" if link else "",
        fields=[
            _field("Qty", _qty(order)),
            _field("Urgency", order.get("urgency") or "Normal"),
            _field("Price", order.get("price")),
            _field("Requested by", order.get("requestedBy") or actor_name),
        ],
        priority=Priority.HIGH if report_service.is_urgent(order) else Priority.NORMAL,
    )


def order_status_changed(order: dict, actor_name: str) -> Notification:
    return Notification(
        icon="📋",
        title=f"Order Status Updated: {order.get('item') or ''}".rstrip(),
        fields=[_field("New Status", order.get("status")), _field("Updated by", actor_name)],
    )


def record_deleted(entry: dict) -> Notification:
    return Notification(
        icon="🗑️",
        title=f"{entry['type']} Deleted: {entry['name']}",
        fields=[_field("Deleted by", entry.get("deletedBy")), _field("Details", entry.get("details"))],
        priority=Priority.HIGH,
    )


def _overdue_line(checkout: dict, today: date) -> str:
    due = clock.parse_day(checkout.get("ret"))
    late = f" ({(today - due).days}d late)" if due else ""
    return f"• *{checkout.get('item')}* · {checkout.get('user')} · due {checkout.get('ret')}{late}"


def overdue_alert(checkouts: list[dict], today: date) -> Notification:
    return Notification(
        icon="⏰",
        title=f"Overdue Checkouts ({len(checkouts)})",
        body="\n".join(_overdue_line(c, today) for c in checkouts),
        priority=Priority.HIGH,
    )


# --- Digest text ---

def _capped(lines: list[str], cap: int) -> list[str]:
    if len(lines) <= cap:
        return lines
    return lines[:cap] + [f"+{len(lines) - cap} more"]


def _order_line(order: dict) -> str:
    who = order.get("requestedBy") or "—"
    return f"• *{order.get('item')}* ×{_qty(order)} · {who} ({order.get('status')})"


def _low_stock_line(item: dict) -> str:
    return f"• *{item.get('name')}* · {item.get('qty')} {item.get('unit') or ''} left (min {item.get('minQty')})"


def _section(title: str, lines: list[str]) -> str:
    return f"*{title}*\n" + "\n".join(lines)


class NotificationRouter:
    """Routes events to the transport according to the ``slack_mode`` setting.

    Modes: ``off`` drops everything, ``all`` delivers everything, ``important``
    delivers high priority only, ``digest`` queues everything for the next
    digest and still delivers high priority immediately. Delivery failures
    are logged and swallowed.
    """

    # One digest at a time, so two compilers never clear each other's rows
    _digest_lock = threading.Lock()

    def __init__(self, store: TableStore, transport: NotificationTransport):
        self.store = store
        self.transport = transport

    def _deliver(self, notification: Notification) -> bool:
        try:
            return bool(self.transport.deliver(notification))
        except Exception as e:
            logger.error("Notification %r not delivered: %s", notification.title, e)
            return False

    def _mode(self) -> NotificationMode:
        try:
            return load_settings(self.store).slack_mode
        except Exception as e:
            logger.error("Could not read notification mode, using 'all': %s", e)
            return NotificationMode.ALL

    def enqueue(self, notification: Notification) -> bool:
        entry = {
            "timestamp": clock.timestamp(),
            "icon": notification.icon,
            "title": notification.title,
            "body": notification.body,
            "fields": notification.fields,
        }
        try:
            with self.store.lock(PENDING_NOTIFICATIONS):
                self.store.append(PENDING_NOTIFICATIONS, encode(entry, self.store.headers(PENDING_NOTIFICATIONS)))
        except Exception as e:
            logger.error("Could not queue %r for the digest: %s", notification.title, e)
            return False
        return True

    def dispatch(self, notification: Notification) -> Outcome:
        mode = self._mode()
        high = notification.priority == Priority.HIGH

        if mode == NotificationMode.OFF:
            return Outcome.DROPPED
        if mode == NotificationMode.IMPORTANT and not high:
            return Outcome.DROPPED
        if mode == NotificationMode.DIGEST:
            self.enqueue(notification)
            if not high:
                return Outcome.QUEUED
            self._deliver(notification)
            return Outcome.QUEUED_AND_DELIVERED

        self._deliver(notification)
        return Outcome.DELIVERED

    def dispatch_all(self, notifications: list[Notification]) -> list[Outcome]:
        return [self.dispatch(n) for n in notifications]

    def pending(self) -> list[dict]:
        return decode(self.store.headers(PENDING_NOTIFICATIONS), self.store.rows(PENDING_NOTIFICATIONS))

    def _clear_pending(self, count: int) -> None:
        # Entries queued while the digest was being sent sit after the first
        # ``count`` rows and are kept for the next digest.
        with self.store.lock(PENDING_NOTIFICATIONS):
            for position in reversed(range(count)):
                self.store.delete(PENDING_NOTIFICATIONS, position)

    def compile_digest(self, today: date | None = None) -> DigestReport:
        """Send one rollup message and then clear the digest queue."""
        today = today or clock.today()
        with self._digest_lock:
            queued = self.pending()
            urgent, normal = report_service.split_by_urgency(report_service.pending_orders(self.store))
            overdue = report_service.overdue_checkouts(self.store, today)
            low = report_service.low_stock_items(self.store)
            activity = report_service.activity_today(self.store, today)
            by_icon = report_service.queued_by_icon(queued)

            sections = []
            if urgent:
                sections.append(_section(f"🔴 Urgent orders ({len(urgent)})", [_order_line(o) for o in urgent]))
            if normal:
                sections.append(_section(
                    f"🛒 Open orders ({len(normal)})",
                    _capped([_order_line(o) for o in normal], DIGEST_ORDER_LINES),
                ))
            if overdue:
                sections.append(_section(
                    f"⏰ Overdue checkouts ({len(overdue)})",
                    [_overdue_line(c, today) for c in overdue],
                ))
            if low:
                sections.append(_section(
                    f"📉 Low stock ({len(low)})",
                    _capped([_low_stock_line(it) for it in low], DIGEST_LOW_STOCK_LINES),
                ))
            if not sections:
                sections.append("All clear. Nothing needs attention today.")

            if any(activity.values()):
                sections.append(
                    f"*Today:* {activity['deliveries']} deliveries · "
                    f"{activity['checkouts']} checkouts · {activity['orders']} orders"
                )
            if by_icon:
                counts = ", ".join(f"{icon} ×{n}" for icon, n in by_icon.items())
                sections.append(f"*Since last digest ({len(queued)} updates):* {counts}")

            text = "\n\n".join(sections)
            digest = Notification(
                icon="📊",
                title=f"Daily Digest · {today.strftime('%a %b %d')}",
                body=text,
                priority=Priority.HIGH,
            )
            delivered = self._deliver(digest)
            self._clear_pending(len(queued))

        logger.info("Digest for %s sent (delivered=%s, %d queued cleared)", today, delivered, len(queued))
        return DigestReport(
            date=today.isoformat(),
            urgent_orders=len(urgent),
            pending_orders=len(normal),
            overdue_checkouts=len(overdue),
            low_stock=len(low),
            queued=by_icon,
            activity=activity,
            delivered=delivered,
            text=text,
        )
