from collections import Counter
from datetime import date

from labtrack.models.sheets import (
    CHECKOUT_ACTIVE,
    CHECKOUTS,
    DELIVERIES,
    HIGH_URGENCIES,
    ITEMS,
    OPEN_ORDER_STATUSES,
    ORDERS,
)
from labtrack.services.clock import parse_day
from labtrack.services.ledger_service import list_records
from labtrack.services.table_store import TableStore

_OPEN = {s.lower() for s in OPEN_ORDER_STATUSES}
_URGENT = {u.lower() for u in HIGH_URGENCIES}


def _norm(value) -> str:
    return str(value or "").strip().lower()


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def pending_orders(store: TableStore) -> list[dict]:
    return [o for o in list_records(store, ORDERS) if _norm(o.get("status")) in _OPEN]


def is_urgent(order: dict) -> bool:
    return _norm(order.get("urgency")) in _URGENT


def split_by_urgency(orders: list[dict]) -> tuple[list[dict], list[dict]]:
    urgent = [o for o in orders if is_urgent(o)]
    normal = [o for o in orders if not is_urgent(o)]
    return urgent, normal


def overdue_checkouts(store: TableStore, today: date) -> list[dict]:
    """Active checkouts whose return date is strictly before ``today``."""
    overdue = []
    for c in list_records(store, CHECKOUTS):
        if _norm(c.get("status")) != CHECKOUT_ACTIVE.lower():
            continue
        due = parse_day(c.get("ret"))
        if due is not None and due < today:
            overdue.append(c)
    return overdue


def low_stock_items(store: TableStore) -> list[dict]:
    """Items at or below their reorder threshold; both quantities must be set."""
    return [
        it for it in list_records(store, ITEMS)
        if _is_number(it.get("qty")) and _is_number(it.get("minQty")) and it["qty"] <= it["minQty"]
    ]


def activity_today(store: TableStore, today: date) -> dict[str, int]:
    return {
        "deliveries": sum(1 for d in list_records(store, DELIVERIES) if parse_day(d.get("date")) == today),
        "checkouts": sum(1 for c in list_records(store, CHECKOUTS) if parse_day(c.get("out")) == today),
        "orders": sum(1 for o in list_records(store, ORDERS) if parse_day(o.get("date")) == today),
    }


def queued_by_icon(entries: list[dict]) -> dict[str, int]:
    return dict(Counter(e.get("icon") or "•" for e in entries))
