"""Maps an action name and its payload onto one ledger or digest operation."""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from labtrack.errors import ValidationFailure
from labtrack.schemas import actions as payloads
from labtrack.schemas.notification import Notification
from labtrack.services import ledger_service
from labtrack.services import notification_service as events
from labtrack.services.auth_service import Principal, Role, authorize
from labtrack.services.notification_service import NotificationRouter
from labtrack.services.table_store import TableStore

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    body: dict[str, Any] = field(default_factory=lambda: {"ok": True})
    notifications: list[Notification] = field(default_factory=list)


@dataclass
class ActionContext:
    store: TableStore
    router: NotificationRouter
    principal: Principal


Handler = Callable[[ActionContext, Any], ActionResult]


@dataclass(frozen=True)
class ActionSpec:
    role: Role
    payload: type[BaseModel]
    handler: Handler
    forbidden: str = "Admin only"


def _add_item(ctx: ActionContext, p: payloads.AddItemPayload) -> ActionResult:
    item = ledger_service.add_item(ctx.store, p.item, ctx.principal)
    return ActionResult({"ok": True, "id": item["id"]}, [events.item_added(item, ctx.principal.name)])


def _update_item(ctx: ActionContext, p: payloads.UpdateItemPayload) -> ActionResult:
    ledger_service.update_item(ctx.store, p.item, ctx.principal)
    return ActionResult()


def _delete_item(ctx: ActionContext, p: payloads.DeleteItemPayload) -> ActionResult:
    entry = ledger_service.delete_item(ctx.store, p.item_id, ctx.principal)
    return ActionResult(notifications=[events.record_deleted(entry)])


def _add_delivery(ctx: ActionContext, p: payloads.AddDeliveryPayload) -> ActionResult:
    delivery = ledger_service.add_delivery(ctx.store, p.delivery, ctx.principal)
    return ActionResult(
        {"ok": True, "id": delivery["id"]}, [events.delivery_received(delivery, ctx.principal.name)]
    )


def _add_checkout(ctx: ActionContext, p: payloads.AddCheckoutPayload) -> ActionResult:
    checkout = ledger_service.add_checkout(ctx.store, p.checkout, ctx.principal)
    return ActionResult({"ok": True, "id": checkout["id"]}, [events.item_checked_out(checkout)])


def _return_item(ctx: ActionContext, p: payloads.ReturnItemPayload) -> ActionResult:
    checkout, changed = ledger_service.return_item(ctx.store, p.checkout_id, ctx.principal)
    if not changed:
        return ActionResult({"ok": True, "alreadyReturned": True})
    return ActionResult(notifications=[events.item_returned(checkout)])


def _add_order(ctx: ActionContext, p: payloads.AddOrderPayload) -> ActionResult:
    order = ledger_service.add_order(ctx.store, p.order, ctx.principal)
    return ActionResult({"ok": True, "id": order["id"]}, [events.order_requested(order, ctx.principal.name)])


def _update_order_status(ctx: ActionContext, p: payloads.UpdateOrderStatusPayload) -> ActionResult:
    order = ledger_service.update_order_status(ctx.store, p.order_id, p.status, ctx.principal)
    return ActionResult(notifications=[events.order_status_changed(order, ctx.principal.name)])


def _delete_order(ctx: ActionContext, p: payloads.DeleteOrderPayload) -> ActionResult:
    entry = ledger_service.delete_order(ctx.store, p.order_id, ctx.principal)
    return ActionResult(notifications=[events.record_deleted(entry)])


def _save_settings(ctx: ActionContext, p: payloads.SaveSettingsPayload) -> ActionResult:
    ledger_service.save_settings(ctx.store, p.key, p.value, ctx.principal)
    return ActionResult()


def _send_digest(ctx: ActionContext, p: payloads.SendDigestPayload) -> ActionResult:
    report = ctx.router.compile_digest()
    return ActionResult({"ok": True, "digest": report.model_dump()})


ACTIONS: dict[str, ActionSpec] = {
    "addItem": ActionSpec(Role.MEMBER, payloads.AddItemPayload, _add_item),
    "updateItem": ActionSpec(Role.MEMBER, payloads.UpdateItemPayload, _update_item),
    "deleteItem": ActionSpec(Role.ADMIN, payloads.DeleteItemPayload, _delete_item, "Only admins can delete items"),
    "addDelivery": ActionSpec(Role.MEMBER, payloads.AddDeliveryPayload, _add_delivery),
    "addCheckout": ActionSpec(Role.MEMBER, payloads.AddCheckoutPayload, _add_checkout),
    "returnItem": ActionSpec(Role.MEMBER, payloads.ReturnItemPayload, _return_item),
    "addOrder": ActionSpec(Role.MEMBER, payloads.AddOrderPayload, _add_order),
    "updateOrderStatus": ActionSpec(Role.MEMBER, payloads.UpdateOrderStatusPayload, _update_order_status),
    "deleteOrder": ActionSpec(Role.ADMIN, payloads.DeleteOrderPayload, _delete_order, "Only admins can delete orders"),
    "saveSettings": ActionSpec(Role.ADMIN, payloads.SaveSettingsPayload, _save_settings, "Only admins can change settings"),
    "sendDigest": ActionSpec(Role.ADMIN, payloads.SendDigestPayload, _send_digest, "Only admins can send the digest"),
}


def _describe(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}" for err in e.errors()
    )


def run_action(
    store: TableStore,
    router: NotificationRouter,
    principal: Principal,
    action: Any,
    payload: dict[str, Any],
) -> ActionResult:
    """Authorize, validate and run one action for an authenticated principal."""
    spec = ACTIONS.get(action) if isinstance(action, str) else None
    if spec is None:
        raise ValidationFailure(f"Unknown action: {action}")

    authorize(principal, spec.role, spec.forbidden)

    try:
        data = spec.payload.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailure(_describe(e))

    logger.debug("Running %s for %s", action, principal.email)
    return spec.handler(ActionContext(store, router, principal), data)
