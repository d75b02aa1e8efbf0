"""Mutations of the inventory tables.

Every lookup goes through ``ids_match`` and every scan-then-write sequence
runs under the table's lock. Updates rewrite only the cells that change, so
untouched cells keep whatever representation the store gave them.
"""
import json
import logging
import uuid
from typing import Any

from labtrack.errors import NotFound, ValidationFailure
from labtrack.models.sheets import (
    ADMINS_KEY,
    CHECKOUT_ACTIVE,
    CHECKOUT_RETURNED,
    CHECKOUTS,
    DELETE_LOG,
    DELIVERIES,
    ITEMS,
    ORDERS,
    SLACK_MODE_KEY,
    STATUS_AVAILABLE,
    STATUS_IN_USE,
)
from labtrack.schemas.inventory import CheckoutCreate, DeliveryCreate, ItemCreate, ItemUpdate
from labtrack.schemas.notification import NotificationMode
from labtrack.schemas.order import OrderCreate
from labtrack.schemas.settings import LabSettings
from labtrack.services import clock
from labtrack.services.auth_service import Principal, Role, authorize
from labtrack.services.identity import find_position
from labtrack.services.row_codec import decode, decode_row, encode, encode_cell
from labtrack.services.settings_service import load_settings, save_setting
from labtrack.services.table_store import TableStore

logger = logging.getLogger(__name__)

_ID_PREFIXES = {ITEMS: "IT", DELIVERIES: "DL", CHECKOUTS: "CO", ORDERS: "PO"}


def _generate_id(table: str) -> str:
    ts = clock.now().strftime("%Y%m%d%H%M%S")
    short = uuid.uuid4().hex[:6].upper()
    return f"{_ID_PREFIXES[table]}-{ts}-{short}"


def list_records(store: TableStore, table: str) -> list[dict[str, Any]]:
    return decode(store.headers(table), store.rows(table))


def _locate(store: TableStore, table: str, record_id, what: str) -> tuple[list[str], list[Any], int]:
    """Headers, raw row and position of the first row whose id matches."""
    headers = store.headers(table)
    rows = store.rows(table)
    position = find_position(decode(headers, rows), record_id)
    if position is None:
        raise NotFound(f"No {what} with id {record_id}")
    return headers, rows[position], position


def _write_cells(store: TableStore, table: str, headers: list[str], raw: list[Any], position: int, changes: dict) -> dict:
    row = list(raw) + [""] * (len(headers) - len(raw))
    for field, value in changes.items():
        if field in headers:
            row[headers.index(field)] = encode_cell(field, value)
    store.update(table, position, row)
    return decode_row(headers, row)


def _insert(store: TableStore, table: str, record: dict[str, Any], what: str) -> dict[str, Any]:
    with store.lock(table):
        headers = store.headers(table)
        if not record.get("id"):
            record["id"] = _generate_id(table)
        elif find_position(decode(headers, store.rows(table)), record["id"]) is not None:
            raise ValidationFailure(f"A {what} with id {record['id']} already exists")
        row = encode(record, headers)
        store.append(table, row)
    return decode_row(headers, row)


def log_deletion(store: TableStore, entity_type: str, name: str, details: str, deleted_by: str) -> dict[str, Any]:
    entry = {
        "date": clock.timestamp(),
        "type": entity_type,
        "name": name,
        "details": details,
        "deletedBy": deleted_by,
    }
    with store.lock(DELETE_LOG):
        store.append(DELETE_LOG, encode(entry, store.headers(DELETE_LOG)))
    return entry


# --- Items ---

def add_item(store: TableStore, data: ItemCreate, actor: Principal) -> dict[str, Any]:
    record = data.to_record()
    record["usedBy"] = []
    item = _insert(store, ITEMS, record, "item")
    logger.info("Item %s (%s) added by %s", item["id"], item["name"], actor.email)
    return item


def update_item(store: TableStore, data: ItemUpdate, actor: Principal) -> dict[str, Any]:
    with store.lock(ITEMS):
        headers, raw, position = _locate(store, ITEMS, data.id, "item")
        changes = data.changes()
        used_by = decode_row(headers, raw).get("usedBy") or []
        if used_by and changes.get("status", STATUS_IN_USE) != STATUS_IN_USE:
            raise ValidationFailure(
                f"Item {data.id} is checked out by {', '.join(map(str, used_by))}; return it before changing its status"
            )
        item = _write_cells(store, ITEMS, headers, raw, position, changes)
    logger.info("Item %s updated by %s: %s", data.id, actor.email, sorted(changes))
    return item


def delete_item(store: TableStore, item_id: str, actor: Principal) -> dict[str, Any]:
    """Remove an item, writing its DeleteLog entry first. Returns the entry."""
    authorize(actor, Role.ADMIN, "Only admins can delete items")
    with store.lock(ITEMS):
        headers, raw, position = _locate(store, ITEMS, item_id, "item")
        item = decode_row(headers, raw)
        details = "cat:{} qty:{} loc:{} serial:{}".format(
            item.get("cat", ""), item.get("qty", ""), item.get("loc", ""), item.get("serial", "")
        )
        entry = log_deletion(store, "Item", item.get("name") or "Unknown", details, actor.name)
        store.delete(ITEMS, position)
    logger.info("Item %s deleted by %s", item_id, actor.email)
    return entry


def set_item_usage(store: TableStore, checkout: dict[str, Any], mode: str) -> dict[str, Any] | None:
    """Add or remove the checkout's user on the item it refers to.

    The item is found by ``itemId`` when the checkout has one that resolves,
    otherwise by exact name (first matching row). A checkout naming no known
    item changes nothing.
    """
    user = checkout.get("user") or ""
    with store.lock(ITEMS):
        headers = store.headers(ITEMS)
        rows = store.rows(ITEMS)
        items = decode(headers, rows)

        position = None
        if checkout.get("itemId"):
            position = find_position(items, checkout["itemId"])
        if position is None:
            name = str(checkout.get("item") or "").strip()
            position = next(
                (i for i, it in enumerate(items) if name and str(it.get("name") or "").strip() == name),
                None,
            )
        if position is None:
            logger.info("No item matches checkout %s (%s); usage unchanged", checkout.get("id"), checkout.get("item"))
            return None

        used_by = list(items[position].get("usedBy") or [])
        if mode == "add":
            if user not in used_by:
                used_by.append(user)
        elif mode == "remove":
            used_by = [u for u in used_by if u != user]
        else:
            raise ValueError(f"Unknown usage mode {mode!r}")

        status = STATUS_IN_USE if used_by else STATUS_AVAILABLE
        return _write_cells(store, ITEMS, headers, rows[position], position, {"status": status, "usedBy": used_by})


# --- Deliveries ---

def add_delivery(store: TableStore, data: DeliveryCreate, actor: Principal) -> dict[str, Any]:
    record = data.to_record()
    record["date"] = record["date"] or clock.today().isoformat()
    record["receivedBy"] = record["receivedBy"] or actor.name
    delivery = _insert(store, DELIVERIES, record, "delivery")
    logger.info("Delivery %s of %s recorded by %s", delivery["id"], delivery["item"], actor.email)
    return delivery


# --- Checkouts ---

def add_checkout(store: TableStore, data: CheckoutCreate, actor: Principal) -> dict[str, Any]:
    record = data.to_record()
    record["status"] = CHECKOUT_ACTIVE
    record["out"] = record["out"] or clock.today().isoformat()
    checkout = _insert(store, CHECKOUTS, record, "checkout")
    try:
        set_item_usage(store, checkout, "add")
    except Exception:
        # Drop the checkout so a retry does not leave a duplicate behind
        logger.error("Item usage update failed for checkout %s; removing it", checkout["id"])
        with store.lock(CHECKOUTS):
            _, _, position = _locate(store, CHECKOUTS, checkout["id"], "checkout")
            store.delete(CHECKOUTS, position)
        raise
    logger.info("Checkout %s: %s -> %s", checkout["id"], checkout["item"], checkout["user"])
    return checkout


def return_item(store: TableStore, checkout_id: str, actor: Principal) -> tuple[dict[str, Any], bool]:
    """Mark a checkout Returned. Returns (checkout, changed); repeats are no-ops."""
    with store.lock(CHECKOUTS):
        headers, raw, position = _locate(store, CHECKOUTS, checkout_id, "checkout")
        checkout = decode_row(headers, raw)
        if checkout.get("status") == CHECKOUT_RETURNED:
            return checkout, False
        checkout = _write_cells(store, CHECKOUTS, headers, raw, position, {"status": CHECKOUT_RETURNED})
    try:
        set_item_usage(store, checkout, "remove")
    except Exception:
        # Reopen the checkout so the return can be retried
        logger.error("Item usage update failed for return of %s; reopening it", checkout_id)
        with store.lock(CHECKOUTS):
            headers, raw, position = _locate(store, CHECKOUTS, checkout_id, "checkout")
            _write_cells(store, CHECKOUTS, headers, raw, position, {"status": CHECKOUT_ACTIVE})
        raise
    logger.info("Checkout %s returned (%s by %s), recorded by %s",
                checkout_id, checkout.get("item"), checkout.get("user"), actor.email)
    return checkout, True


# --- Orders ---

def add_order(store: TableStore, data: OrderCreate, actor: Principal) -> dict[str, Any]:
    record = data.to_record()
    record["date"] = record["date"] or clock.today().isoformat()
    record["requestedBy"] = record["requestedBy"] or actor.name
    order = _insert(store, ORDERS, record, "order")
    logger.info("Order %s for %s placed by %s", order["id"], order["item"], actor.email)
    return order


def update_order_status(store: TableStore, order_id: str, status: str, actor: Principal) -> dict[str, Any]:
    with store.lock(ORDERS):
        headers, raw, position = _locate(store, ORDERS, order_id, "order")
        order = _write_cells(store, ORDERS, headers, raw, position, {"status": status})
    logger.info("Order %s -> %s by %s", order_id, status, actor.email)
    return order


def delete_order(store: TableStore, order_id: str, actor: Principal) -> dict[str, Any]:
    authorize(actor, Role.ADMIN, "Only admins can delete orders")
    with store.lock(ORDERS):
        headers, raw, position = _locate(store, ORDERS, order_id, "order")
        order = decode_row(headers, raw)
        details = "id:{} qty:{} {} requestedBy:{} status:{}".format(
            order.get("id"), order.get("qty", ""), order.get("unit", ""),
            order.get("requestedBy", ""), order.get("status", ""),
        )
        entry = log_deletion(store, "Order", order.get("item") or "Unknown", details, actor.name)
        store.delete(ORDERS, position)
    logger.info("Order %s deleted by %s", order_id, actor.email)
    return entry


# --- Settings ---

def save_settings(store: TableStore, key: str, value: Any, actor: Principal) -> None:
    authorize(actor, Role.ADMIN, "Only admins can change settings")
    if not key:
        raise ValidationFailure("Setting key is required")

    if key == SLACK_MODE_KEY:
        value = str(value or "").strip().lower()
        modes = [m.value for m in NotificationMode]
        if value not in modes:
            raise ValidationFailure(f"slack_mode must be one of {', '.join(modes)}")
    elif key == ADMINS_KEY:
        admins = value
        if isinstance(value, str):
            try:
                admins = json.loads(value)
            except ValueError:
                admins = None
        if not isinstance(admins, list) or not all(isinstance(a, str) for a in admins):
            raise ValidationFailure("admins must be a JSON array of email addresses")
        value = admins

    save_setting(store, key, value)
    logger.info("Setting %s changed by %s", key, actor.email)


# --- Read side ---

def snapshot(store: TableStore, lab_settings: LabSettings | None = None) -> dict[str, Any]:
    if lab_settings is None:
        lab_settings = load_settings(store)
    return {
        "items": list_records(store, ITEMS),
        "deliveries": list_records(store, DELIVERIES),
        "checkouts": list_records(store, CHECKOUTS),
        "orders": list_records(store, ORDERS),
        "deleteLog": list_records(store, DELETE_LOG),
        "settings": lab_settings.values,
    }
