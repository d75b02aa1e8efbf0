import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from starlette.concurrency import run_in_threadpool

from labtrack.database import get_store
from labtrack.errors import Unauthorized
from labtrack.schemas.settings import LabSettings
from labtrack.services import auth_service, ledger_service
from labtrack.services.auth_service import GoogleTokenVerifier, IdentityVerifier
from labtrack.services.dispatcher import run_action
from labtrack.services.notification_service import NotificationRouter
from labtrack.services.settings_service import load_settings
from labtrack.services.slack_service import NotificationTransport, SlackTransport
from labtrack.services.table_store import TableStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["LabTrack"])


def get_verifier() -> IdentityVerifier:
    return GoogleTokenVerifier()


def get_transport() -> NotificationTransport:
    return SlackTransport()


def _bearer(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    return value.strip() if scheme.lower() == "bearer" else ""


@router.get("/data")
def read_snapshot(
    request: Request,
    token: str = "",
    verifier: IdentityVerifier = Depends(get_verifier),
    store: TableStore = Depends(get_store),
):
    """Everything the client shows: all tables, settings and the caller's role."""
    lab_settings = load_settings(store)
    principal = auth_service.authenticate(token or _bearer(request), verifier, lab_settings)
    data = ledger_service.snapshot(store, lab_settings)
    data["userRole"] = principal.role.value
    return data


@router.post("/actions")
async def post_action(
    request: Request,
    background_tasks: BackgroundTasks,
    verifier: IdentityVerifier = Depends(get_verifier),
    transport: NotificationTransport = Depends(get_transport),
    store: TableStore = Depends(get_store),
):
    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    token = body.get("token") or _bearer(request)
    if not token:
        raise Unauthorized("Token verification failed for POST")
    lab_settings = await run_in_threadpool(load_settings, store)
    principal = await run_in_threadpool(auth_service.authenticate, token, verifier, lab_settings)

    notifier = NotificationRouter(store, transport)
    result = await run_in_threadpool(run_action, store, notifier, principal, body.get("action"), body)

    if result.notifications:
        background_tasks.add_task(notifier.dispatch_all, result.notifications)
    return result.body
