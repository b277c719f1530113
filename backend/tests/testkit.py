from __future__ import annotations

import json
from dataclasses import dataclass
from urllib import error, request
from uuid import uuid4

from orgauth.core.security import hash_password
from orgauth.models.organization import Organization
from orgauth.models.principal import OrganizationAdmin, Superadmin

PASSWORD = "Correct-Horse-9"


class ApiError(RuntimeError):
    def __init__(self, status_code: int, payload):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"HTTP {status_code}: {payload}")


class ApiClient:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def call(self, method: str, path: str, *, token: str | None = None, body=None, timeout: int = 20):
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        payload = None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if body is not None:
            headers["Content-Type"] = "application/json"
            payload = json.dumps(body).encode("utf-8")

        req = request.Request(url=url, data=payload, headers=headers, method=method.upper())
        try:
            with request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read().decode("utf-8")
                return _parse_payload(raw)
        except error.HTTPError as exc:
            raw = exc.read().decode("utf-8")
            raise ApiError(exc.code, _parse_payload(raw)) from exc


@dataclass
class IdentityFactory:
    seed: str
    counter: int = 0

    def next_email(self, prefix: str = "user") -> str:
        self.counter += 1
        return f"{prefix}.{self.seed}.{self.counter}@example.com"


def _parse_payload(raw: str):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def login(api: ApiClient, identifier: str, password: str) -> dict:
    """Password login; returns the envelope's data block (user, organization, token)."""
    envelope = api.call("POST", "/auth/login", body={"identifier": identifier, "password": password})
    if not isinstance(envelope, dict) or not envelope.get("success"):
        raise AssertionError(f"Unexpected login envelope: {envelope}")
    data = envelope.get("data") or {}
    if not data.get("token"):
        raise AssertionError("No token in login response.")
    return data


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_organization(db, *, name: str = "Acme", status: str = "active") -> Organization:
    row = Organization(
        name=name,
        organization_db=f"org_{uuid4().hex[:16]}",
        status=status,
        subscription_plan="free",
        enabled_modules=["basic"],
    )
    db.add(row)
    db.commit()
    return row


def make_superadmin(db, email: str = "root@example.com", *, password: str = PASSWORD, active: bool = True) -> Superadmin:
    row = Superadmin(email=email, name="Root", password=hash_password(password), is_active=active)
    db.add(row)
    db.commit()
    return row


def make_admin(
    db,
    email: str = "admin@example.com",
    *,
    password: str | None = PASSWORD,
    organization: Organization | None = None,
    active: bool = True,
) -> OrganizationAdmin:
    org = organization or make_organization(db)
    row = OrganizationAdmin(
        admin_email=email,
        name="Ada Admin",
        password=hash_password(password) if password else None,
        auth_provider="password",
        role="admin",
        organization_id=org.organization_id,
        is_active=active,
    )
    db.add(row)
    db.commit()
    return row


