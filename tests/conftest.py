"""
Pytest configuration and fixtures for LabTrack tests.
"""
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from labtrack.config import settings
from labtrack.models.sheets import SETTINGS
from labtrack.services.auth_service import Principal, Role
from labtrack.services.notification_service import NotificationRouter
from labtrack.services.settings_service import save_setting
from labtrack.services.table_store import MemoryTableStore, init_tables

ADMIN_EMAIL = "boss@lab.test"
MEMBER_EMAIL = "alice@lab.test"


class RecordingTransport:
    """Transport double that keeps every notification it is given."""

    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    def deliver(self, notification):
        self.sent.append(notification)
        return self.ok

    @property
    def titles(self):
        return [n.title for n in self.sent]


class FakeVerifier:
    """Maps known tokens to tokeninfo payloads; any other token fails."""

    def __init__(self, tokens):
        self.tokens = tokens
        self.calls = []

    def verify(self, token):
        self.calls.append(token)
        if token not in self.tokens:
            raise ValueError("invalid token")
        return self.tokens[token]


@pytest.fixture
def store():
    """Empty in-memory workbook with every table created."""
    s = MemoryTableStore()
    init_tables(s)
    s.append(SETTINGS, ["admins", json.dumps([ADMIN_EMAIL])])
    return s


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def router(store, transport):
    return NotificationRouter(store, transport)


@pytest.fixture
def member():
    return Principal(email=MEMBER_EMAIL, name="alice", domain=settings.ALLOWED_DOMAIN)


@pytest.fixture
def admin():
    return Principal(email=ADMIN_EMAIL, name="Boss", domain=settings.ALLOWED_DOMAIN, role=Role.ADMIN)


@pytest.fixture
def verifier():
    return FakeVerifier({
        "member-token": {"email": MEMBER_EMAIL, "name": "alice", "hd": settings.ALLOWED_DOMAIN},
        "admin-token": {"email": ADMIN_EMAIL, "name": "Boss", "hd": settings.ALLOWED_DOMAIN},
        "outsider-token": {"email": "eve@gmail.com", "name": "Eve", "hd": "gmail.com"},
    })


@pytest.fixture
def client(store, transport, verifier):
    """API client wired to the in-memory store and test doubles."""
    from labtrack.api.dispatch import get_transport, get_verifier
    from labtrack.database import get_store
    from labtrack.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_verifier] = lambda: verifier
    app.dependency_overrides[get_transport] = lambda: transport
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def set_mode(store):
    """Write the slack_mode setting directly."""
    def _set(mode):
        save_setting(store, "slack_mode", mode)
    return _set
