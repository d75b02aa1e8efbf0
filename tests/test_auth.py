"""
Tests for token verification, admin resolution and role checks.
"""
import json

import httpx
import pytest

from labtrack.config import settings
from labtrack.errors import Forbidden, Unauthorized
from labtrack.schemas.settings import LabSettings
from labtrack.services.auth_service import (
    GoogleTokenVerifier,
    Principal,
    Role,
    authenticate,
    authorize,
    is_admin,
)
from labtrack.services.settings_service import load_settings, parse_admins

from conftest import ADMIN_EMAIL, MEMBER_EMAIL

pytestmark = pytest.mark.auth


@pytest.fixture
def lab_settings():
    return LabSettings(admins=[ADMIN_EMAIL])


class TestAuthenticate:

    def test_member(self, verifier, lab_settings):
        principal = authenticate("member-token", verifier, lab_settings)
        assert principal.email == MEMBER_EMAIL
        assert principal.name == "alice"
        assert principal.role == Role.MEMBER

    def test_admin(self, verifier, lab_settings):
        assert authenticate("admin-token", verifier, lab_settings).role == Role.ADMIN

    def test_name_falls_back_to_email(self, lab_settings):
        class V:
            def verify(self, token):
                return {"email": "x@lab.test", "hd": settings.ALLOWED_DOMAIN}
        assert authenticate("t", V(), lab_settings).name == "x@lab.test"

    @pytest.mark.parametrize("token", ["", None])
    def test_missing_token(self, verifier, lab_settings, token):
        with pytest.raises(Unauthorized):
            authenticate(token, verifier, lab_settings)
        assert verifier.calls == []

    def test_oracle_failure(self, verifier, lab_settings):
        with pytest.raises(Unauthorized):
            authenticate("forged", verifier, lab_settings)

    def test_wrong_domain(self, verifier, lab_settings):
        with pytest.raises(Unauthorized):
            authenticate("outsider-token", verifier, lab_settings)

    @pytest.mark.parametrize("payload", [
        None,
        ["not", "a", "dict"],
        {"hd": "seas.upenn.edu"},
        {"email": 42, "hd": "seas.upenn.edu"},
    ])
    def test_malformed_payload(self, lab_settings, payload):
        class V:
            def verify(self, token):
                return payload
        with pytest.raises(Unauthorized):
            authenticate("t", V(), lab_settings)

    def test_unverified_email(self, lab_settings):
        class V:
            def verify(self, token):
                return {"email": "x@lab.test", "hd": settings.ALLOWED_DOMAIN, "email_verified": "false"}
        with pytest.raises(Unauthorized):
            authenticate("t", V(), lab_settings)

    def test_audience_checked_when_configured(self, lab_settings, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "my-client")

        class V:
            def verify(self, token):
                return {"email": "x@lab.test", "hd": settings.ALLOWED_DOMAIN, "aud": "someone-else"}
        with pytest.raises(Unauthorized):
            authenticate("t", V(), lab_settings)

    def test_local_token_rejected_by_default(self, verifier, lab_settings, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_LOCAL_TOKEN", False)
        with pytest.raises(Unauthorized):
            authenticate("local", verifier, lab_settings)
        assert verifier.calls == []

    def test_local_token_when_enabled(self, verifier, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_LOCAL_TOKEN", True)
        monkeypatch.setattr(settings, "LOCAL_USER_EMAIL", ADMIN_EMAIL)
        principal = authenticate("local", verifier, LabSettings(admins=[ADMIN_EMAIL]))
        assert principal.email == ADMIN_EMAIL
        assert principal.is_admin


class TestGoogleTokenVerifier:

    def test_verify_returns_payload(self):
        def handler(request):
            assert request.url.params["id_token"] == "abc"
            return httpx.Response(200, json={"email": "a@b", "hd": "b"})
        client = httpx.Client(transport=httpx.MockTransport(handler))
        assert GoogleTokenVerifier(url="https://oauth.test/tokeninfo", client=client).verify("abc")["email"] == "a@b"

    def test_rejected_token_raises(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(400, json={"error": "invalid"})))
        with pytest.raises(httpx.HTTPStatusError):
            GoogleTokenVerifier(url="https://oauth.test/tokeninfo", client=client).verify("abc")

    def test_rejected_token_is_unauthorized(self, lab_settings):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(400)))
        verifier = GoogleTokenVerifier(url="https://oauth.test/tokeninfo", client=client)
        with pytest.raises(Unauthorized):
            authenticate("abc", verifier, lab_settings)


class TestAdmins:

    def test_is_admin(self, lab_settings):
        assert is_admin(ADMIN_EMAIL, lab_settings)
        assert not is_admin(MEMBER_EMAIL, lab_settings)
        assert not is_admin("", lab_settings)

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', "42", 7])
    def test_unreadable_admins_fail_closed(self, raw):
        assert parse_admins(raw) == []

    def test_admins_read_from_store(self, store):
        assert load_settings(store).admins == [ADMIN_EMAIL]

    def test_missing_admins_key(self):
        assert not is_admin(ADMIN_EMAIL, LabSettings())

    def test_non_string_entries_skipped(self):
        assert parse_admins(json.dumps(["a@x", 5, None])) == ["a@x"]


class TestAuthorize:

    def test_member_forbidden_from_admin_role(self, member):
        with pytest.raises(Forbidden) as exc:
            authorize(member, Role.ADMIN, "Only admins can delete items")
        assert exc.value.detail == "Only admins can delete items"

    def test_member_role_allows_everyone(self, member, admin):
        authorize(member, Role.MEMBER)
        authorize(admin, Role.MEMBER)

    def test_admin_allowed(self, admin):
        authorize(admin, Role.ADMIN)

    def test_principal_flags(self):
        assert not Principal(email="a", name="a").is_admin
