from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Union

import sqlalchemy as sa
from sqlalchemy.orm import Session

from orgauth.core.security import now_utc, verify_password
from orgauth.models.principal import OrganizationAdmin, Superadmin

SUPERADMIN = "superadmin"
ADMIN = "admin"
SYSTEM_TENANT_ID = "system"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class SuperadminPrincipal:
    id: str
    email: str
    name: str | None
    password_hash: str | None
    is_active: bool
    last_login: datetime | None = None

    role: ClassVar[str] = SUPERADMIN


@dataclass(frozen=True)
class TenantAdminPrincipal:
    id: str
    email: str
    name: str | None
    password_hash: str | None
    is_active: bool
    organization_id: str | None
    last_login: datetime | None = None
    profile_picture: str | None = None
    auth_provider: str = "password"

    role: ClassVar[str] = ADMIN


Principal = Union[SuperadminPrincipal, TenantAdminPrincipal]


def normalize_identifier(raw: str | None) -> str:
    return (raw or "").strip().lower()


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def tenant_key(principal: Principal) -> str | None:
    """Tenant id recorded on sessions and tokens; superadmins use the system sentinel."""
    if isinstance(principal, SuperadminPrincipal):
        return SYSTEM_TENANT_ID
    return principal.organization_id


def _from_superadmin(row: Superadmin) -> SuperadminPrincipal:
    return SuperadminPrincipal(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password,
        is_active=bool(row.is_active),
        last_login=row.last_login,
    )


def _from_admin(row: OrganizationAdmin) -> TenantAdminPrincipal:
    return TenantAdminPrincipal(
        id=row.id,
        email=row.admin_email,
        name=row.name,
        password_hash=row.password,
        is_active=bool(row.is_active),
        organization_id=row.organization_id,
        last_login=row.last_login,
        profile_picture=row.profile_picture,
        auth_provider=row.auth_provider,
    )


def find_superadmin(db: Session, identifier: str) -> SuperadminPrincipal | None:
    row = db.execute(
        sa.select(Superadmin).where(sa.func.lower(Superadmin.email) == identifier)
    ).scalars().first()
    return _from_superadmin(row) if row else None


def find_admin(db: Session, identifier: str) -> TenantAdminPrincipal | None:
    row = db.execute(
        sa.select(OrganizationAdmin).where(sa.func.lower(OrganizationAdmin.admin_email) == identifier)
    ).scalars().first()
    return _from_admin(row) if row else None


def find_principal(db: Session, identifier: str) -> Principal | None:
    # Order matters: an email present in both tables is a superadmin.
    identifier = normalize_identifier(identifier)
    superadmin = find_superadmin(db, identifier)
    if superadmin is not None:
        return superadmin
    return find_admin(db, identifier)


def get_principal(db: Session, principal_id: str, role: str) -> Principal | None:
    if role == SUPERADMIN:
        row = db.get(Superadmin, principal_id)
        return _from_superadmin(row) if row else None
    if role == ADMIN:
        row = db.get(OrganizationAdmin, principal_id)
        return _from_admin(row) if row else None
    return None


def check_password(principal: Principal, password: str) -> bool:
    if not principal.password_hash:
        return False
    return verify_password(password, principal.password_hash)


def touch_last_login(db: Session, principal: Principal) -> None:
    model = Superadmin if isinstance(principal, SuperadminPrincipal) else OrganizationAdmin
    db.execute(sa.update(model).where(model.id == principal.id).values(last_login=now_utc()))


def public_user(principal: Principal) -> dict:
    out = {
        "id": principal.id,
        "name": principal.name,
        "email": principal.email,
        "role": principal.role,
        "organization": None,
    }
    if isinstance(principal, TenantAdminPrincipal):
        out["organization"] = principal.organization_id
        out["profile_picture"] = principal.profile_picture
        out["auth_provider"] = principal.auth_provider
    return out
