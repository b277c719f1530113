from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from urllib import error as urlerror
from urllib import request as urlrequest

from jose import JWTError, jwt
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from orgauth.core.config import Settings, settings
from orgauth.core.errors import InvalidAssertionError
from orgauth.core.logging import get_logger
from orgauth.models.principal import OrganizationAdmin
from orgauth.services import tenants
from orgauth.services.audit import audit
from orgauth.services.principals import (
    ADMIN,
    Principal,
    find_admin,
    find_superadmin,
    normalize_identifier,
)

logger = get_logger(__name__)

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


@dataclass(frozen=True)
class FederatedIdentity:
    email: str
    name: str | None
    picture_url: str | None


class IdentityVerifier(Protocol):
    def verify(self, assertion: str) -> FederatedIdentity:
        ...


def _http_json_get(url: str, *, timeout: int) -> dict:
    req = urlrequest.Request(url=url, method="GET", headers={"Accept": "application/json"})
    with urlrequest.urlopen(req, timeout=timeout) as resp:
        raw = resp.read().decode("utf-8")
    return json.loads(raw)


class GoogleIdentityVerifier:
    """Verifies Google ID tokens against Google's published signing keys."""

    def __init__(
        self,
        client_id: str | None,
        *,
        certs_url: str = "https://www.googleapis.com/oauth2/v3/certs",
        cache_seconds: int = 3600,
        timeout: int = 10,
        fetch_json: Callable[..., dict] = _http_json_get,
    ):
        self.client_id = client_id
        self.certs_url = certs_url
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self._fetch_json = fetch_json
        self._keys: list[dict] = []
        self._keys_fetched_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "GoogleIdentityVerifier":
        return cls(
            cfg.GOOGLE_CLIENT_ID,
            certs_url=cfg.GOOGLE_CERTS_URL,
            cache_seconds=cfg.GOOGLE_CERTS_CACHE_SECONDS,
            timeout=cfg.HTTP_TIMEOUT_SECONDS,
        )

    def _signing_keys(self, *, force: bool = False) -> list[dict]:
        with self._lock:
            stale = time.monotonic() - self._keys_fetched_at > self.cache_seconds
            if force or stale or not self._keys:
                document = self._fetch_json(self.certs_url, timeout=self.timeout)
                keys = document.get("keys") if isinstance(document, dict) else None
                if not isinstance(keys, list) or not keys:
                    raise InvalidAssertionError("Invalid Google token", error_code="invalid_jwks")
                self._keys = keys
                self._keys_fetched_at = time.monotonic()
            return self._keys

    def _key_for(self, kid: str | None) -> dict:
        for force in (False, True):
            for key in self._signing_keys(force=force):
                if key.get("kid") == kid:
                    return key
        raise InvalidAssertionError("Invalid Google token", error_code="unknown_signing_key")

    def verify(self, assertion: str) -> FederatedIdentity:
        if not self.client_id:
            logger.error("google_sign_in_not_configured")
            raise InvalidAssertionError("Google sign-in is not configured")
        if not assertion:
            raise InvalidAssertionError("Google token is required")
        try:
            header = jwt.get_unverified_header(assertion)
            key = self._key_for(header.get("kid"))
            claims = jwt.decode(
                assertion,
                key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=GOOGLE_ISSUERS,
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            logger.warning("google_assertion_rejected", error=str(exc))
            raise InvalidAssertionError("Invalid Google token") from exc
        except (urlerror.URLError, TimeoutError, OSError, ValueError) as exc:
            logger.error("google_certs_unavailable", error=str(exc))
            raise InvalidAssertionError("Invalid Google token", error_code="certs_unavailable") from exc

        email = normalize_identifier(claims.get("email"))
        if not email or claims.get("email_verified") in (False, "false"):
            raise InvalidAssertionError("Invalid Google token", error_code="email_not_verified")
        return FederatedIdentity(email=email, name=claims.get("name"), picture_url=claims.get("picture"))


def default_organization_name(identity: FederatedIdentity) -> str:
    owner = identity.name or identity.email.split("@")[0]
    return f"{owner}'s Organization"


def resolve_or_provision(db: Session, identity: FederatedIdentity) -> tuple[Principal, bool]:
    """Find the principal behind a federated identity, creating admin + tenant on first sight.

    Superadmins are only ever matched, never created. A new admin, its
    organization and the binding between them are committed together or not
    at all.
    """
    email = normalize_identifier(identity.email)
    superadmin = find_superadmin(db, email)
    if superadmin is not None:
        return superadmin, False
    admin = find_admin(db, email)
    if admin is not None:
        return admin, False

    try:
        row = OrganizationAdmin(
            admin_email=email,
            name=identity.name,
            profile_picture=identity.picture_url,
            auth_provider="google",
            role=ADMIN,
            is_active=True,
            password=None,
        )
        db.add(row)
        db.flush()
        tenant = tenants.create_tenant(db, default_organization_name(identity), created_by=row.id)
        row.organization_id = tenant.id
        db.flush()
        audit(db, row.id, ADMIN, "organization", tenant.id, "tenant_provisioned", {"plan": tenant.subscription_plan})
        db.commit()
    except IntegrityError:
        # another request provisioned the same email first
        db.rollback()
        admin = find_admin(db, email)
        if admin is None:
            raise
        logger.info("tenant_provision_race_lost", email=email)
        return admin, False
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("tenant_provisioned", email=email, organization_id=tenant.id, store=tenant.db_handle)
    admin = find_admin(db, email)
    return admin, True
