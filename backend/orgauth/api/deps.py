from collections.abc import Iterator
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orgauth.core.errors import (
    ForbiddenError,
    InactiveAccountError,
    InactiveTenantError,
    MissingTokenError,
    NotFoundError,
    TokenInvalidError,
)
from orgauth.core.logging import get_logger
from orgauth.core.security import TokenClaims, TokenConfig, TokenIssuer
from orgauth.db.session import get_db
from orgauth.services import sessions, tenants
from orgauth.services.auth_flow import AuthDeps
from orgauth.services.email import EmailTransport, build_transport
from orgauth.services.federation import GoogleIdentityVerifier, IdentityVerifier
from orgauth.services.principals import ADMIN, SUPERADMIN, Principal, TenantAdminPrincipal, get_principal
from orgauth.services.tenants import TenantInfo, TenantStoreCache

logger = get_logger(__name__)

bearer = HTTPBearer(auto_error=False)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(TokenConfig.from_settings())


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    return GoogleIdentityVerifier.from_settings()


@lru_cache
def get_email_transport() -> EmailTransport:
    return build_transport()


def get_tenant_stores() -> TenantStoreCache:
    return tenants.tenant_stores


def get_auth_deps(
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    identity_verifier: IdentityVerifier = Depends(get_identity_verifier),
    email: EmailTransport = Depends(get_email_transport),
) -> AuthDeps:
    return AuthDeps(token_issuer=token_issuer, identity_verifier=identity_verifier, email=email)


def bearer_token(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str | None:
    if creds is None or not creds.credentials:
        return None
    return creds.credentials


@dataclass(frozen=True)
class CurrentPrincipal:
    principal: Principal
    claims: TokenClaims
    token: str


def get_current_principal(
    token: str | None = Depends(bearer_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
    db: Session = Depends(get_db),
) -> CurrentPrincipal:
    if not token:
        raise MissingTokenError("Access token is required")
    claims = issuer.verify(token)
    try:
        revoked = sessions.is_blacklisted(db, token)
        principal = None if revoked else get_principal(db, claims.user_id, claims.role)
    except SQLAlchemyError as exc:
        # never let an unavailable store wave a token through
        db.rollback()
        logger.error("token_gate_store_error", error=str(exc))
        raise TokenInvalidError("Invalid or expired token") from exc
    if revoked:
        raise TokenInvalidError("Token is no longer valid", error_code="session_revoked")
    if principal is None or not principal.is_active:
        raise InactiveAccountError("Your account is not active")
    return CurrentPrincipal(principal=principal, claims=claims, token=token)


def require_admin(current: CurrentPrincipal = Depends(get_current_principal)) -> CurrentPrincipal:
    if current.principal.role not in {ADMIN, SUPERADMIN}:
        raise ForbiddenError("Admin access required")
    return current


def require_superadmin(current: CurrentPrincipal = Depends(get_current_principal)) -> CurrentPrincipal:
    if current.principal.role != SUPERADMIN:
        raise ForbiddenError("SuperAdmin access required")
    return current


def get_organization_context(
    organization_id: str,
    current: CurrentPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
) -> TenantInfo:
    principal = current.principal
    if isinstance(principal, TenantAdminPrincipal) and principal.organization_id != organization_id:
        raise ForbiddenError("You do not have access to this organization")
    return tenants.resolve(db, organization_id)


def require_active_organization(
    tenant: TenantInfo = Depends(get_organization_context),
    db: Session = Depends(get_db),
) -> TenantInfo:
    if not tenants.is_active(db, tenant.id):
        raise InactiveTenantError("Organization is not active")
    return tenant


def get_tenant_db(
    tenant: TenantInfo = Depends(require_active_organization),
    stores: TenantStoreCache = Depends(get_tenant_stores),
) -> Iterator[Session]:
    if tenant.is_system:
        raise NotFoundError("Organization has no data store")
    with stores.session(tenant.db_handle) as tenant_db:
        yield tenant_db
