import logging
from enum import Enum
from typing import Protocol

import httpx
from pydantic import BaseModel

from labtrack.config import settings
from labtrack.errors import Forbidden, Unauthorized
from labtrack.schemas.settings import LabSettings

logger = logging.getLogger(__name__)

LOCAL_TOKEN = "local"


class Role(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class Principal(BaseModel):
    email: str
    name: str
    domain: str = ""
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> dict: ...


class GoogleTokenVerifier:
    """Checks Google ID tokens against the tokeninfo endpoint."""

    def __init__(self, url: str | None = None, timeout: float | None = None, client: httpx.Client | None = None):
        self.url = url or settings.TOKENINFO_URL
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._client = client

    def verify(self, token: str) -> dict:
        if self._client is not None:
            resp = self._client.get(self.url, params={"id_token": token})
        else:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.get(self.url, params={"id_token": token})
        resp.raise_for_status()
        return resp.json()


def is_admin(email: str, lab_settings: LabSettings) -> bool:
    return bool(email) and email in lab_settings.admins


def _principal(email: str, name: str, domain: str, lab_settings: LabSettings) -> Principal:
    role = Role.ADMIN if is_admin(email, lab_settings) else Role.MEMBER
    return Principal(email=email, name=name or email, domain=domain, role=role)


def authenticate(token: str | None, verifier: IdentityVerifier, lab_settings: LabSettings) -> Principal:
    """Resolve a bearer token to a principal, failing closed on any doubt."""
    if not token:
        raise Unauthorized("Missing token")

    if token == LOCAL_TOKEN:
        if not settings.ALLOW_LOCAL_TOKEN:
            raise Unauthorized("Local mode is disabled")
        return _principal(settings.LOCAL_USER_EMAIL, settings.LOCAL_USER_NAME, "", lab_settings)

    try:
        payload = verifier.verify(token)
    except Exception as e:
        logger.info("Token verification failed: %s", e)
        raise Unauthorized("Token verification failed")

    if not isinstance(payload, dict):
        raise Unauthorized("Token verification failed")
    email = payload.get("email")
    if not isinstance(email, str) or not email:
        raise Unauthorized("Token carries no email")
    if payload.get("hd") != settings.ALLOWED_DOMAIN:
        logger.info("Rejected token for %s: domain %r", email, payload.get("hd"))
        raise Unauthorized(f"Only {settings.ALLOWED_DOMAIN} accounts are allowed")
    if settings.GOOGLE_CLIENT_ID and payload.get("aud") != settings.GOOGLE_CLIENT_ID:
        raise Unauthorized("Token was issued for another application")
    if str(payload.get("email_verified", "true")).lower() == "false":
        raise Unauthorized("Email address is not verified")

    name = payload.get("name") if isinstance(payload.get("name"), str) else ""
    return _principal(email, name, payload["hd"], lab_settings)


def authorize(principal: Principal, role: Role, detail: str = "Admin only") -> None:
    if role == Role.ADMIN and not principal.is_admin:
        raise Forbidden(detail)
