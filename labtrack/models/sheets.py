"""Table names and header layouts of the LabTrack workbook."""

ITEMS = "Items"
DELIVERIES = "Deliveries"
CHECKOUTS = "Checkouts"
ORDERS = "Orders"
SETTINGS = "Settings"
DELETE_LOG = "DeleteLog"
PENDING_NOTIFICATIONS = "PendingNotifications"

ITEM_HEADERS = ["id", "name", "cat", "qty", "unit", "loc", "minQty", "img", "desc", "status", "usedBy", "serial"]
DELIVERY_HEADERS = ["id", "item", "qty", "unit", "from", "receivedBy", "date", "tracking", "status"]
CHECKOUT_HEADERS = ["id", "itemId", "item", "user", "out", "ret", "status"]
ORDER_HEADERS = [
    "id", "item", "qty", "unit", "requestedBy", "reason", "urgency", "date", "status", "price", "link", "cat", "store",
]
SETTINGS_HEADERS = ["key", "value"]
DELETE_LOG_HEADERS = ["date", "type", "name", "details", "deletedBy"]
PENDING_HEADERS = ["timestamp", "icon", "title", "body", "fields"]

LAYOUTS: dict[str, list[str]] = {
    ITEMS: ITEM_HEADERS,
    DELIVERIES: DELIVERY_HEADERS,
    CHECKOUTS: CHECKOUT_HEADERS,
    ORDERS: ORDER_HEADERS,
    SETTINGS: SETTINGS_HEADERS,
    DELETE_LOG: DELETE_LOG_HEADERS,
    PENDING_NOTIFICATIONS: PENDING_HEADERS,
}

# Item status markers written by checkout/return
STATUS_AVAILABLE = "Available"
STATUS_IN_USE = "In Use"

# Checkout lifecycle
CHECKOUT_ACTIVE = "Active"
CHECKOUT_RETURNED = "Returned"

# Order statuses still awaiting fulfilment
OPEN_ORDER_STATUSES = ("Pending", "Approved", "Ordered")
HIGH_URGENCIES = ("High", "Urgent")

# Reserved keys of the Settings table
ADMINS_KEY = "admins"
SLACK_MODE_KEY = "slack_mode"
