"""Login, logout, OTP and Google sign-in flows.

Every flow is a fixed sequence of named steps over a shared ``FlowContext``.
A step either mutates the context or raises an ``AuthError``; the first error
ends the flow and is logged with the step that raised it. Store errors on the
critical path are turned into ``UnexpectedError`` (500) after a rollback,
while attempt bookkeeping is handled by ``attempts`` and never aborts a flow.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orgauth.core.errors import (
    AuthError,
    InactiveAccountError,
    InactiveTenantError,
    InputValidationError,
    InvalidCredentialsError,
    LockoutError,
    MissingTokenError,
    NotFoundError,
    OtpInvalidError,
    UnexpectedError,
)
from orgauth.core.logging import get_logger
from orgauth.core.security import TokenIssuer, login_key_hash
from orgauth.services import attempts, otp, sessions, tenants
from orgauth.services.audit import audit
from orgauth.services.email import EmailTransport
from orgauth.services.federation import FederatedIdentity, IdentityVerifier, resolve_or_provision
from orgauth.services.principals import (
    Principal,
    TenantAdminPrincipal,
    check_password,
    find_principal,
    is_valid_email,
    normalize_identifier,
    public_user,
    tenant_key,
    touch_last_login,
)
from orgauth.services.tenants import SYSTEM_TENANT, TenantInfo

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
TOO_MANY_ATTEMPTS = "Too many login attempts. Please try again after 15 minutes."


@dataclass
class AuthDeps:
    token_issuer: TokenIssuer
    identity_verifier: IdentityVerifier
    email: EmailTransport


@dataclass
class FlowContext:
    db: Session
    deps: AuthDeps
    method: str
    identifier: str = ""
    password: str = ""
    otp_code: str = ""
    assertion: str = ""
    identity: FederatedIdentity | None = None
    principal: Principal | None = None
    tenant: TenantInfo | None = None
    token: str | None = None
    provisioned: bool = False


@dataclass(frozen=True)
class AuthResult:
    principal: Principal
    tenant: TenantInfo
    token: str
    method: str
    provisioned: bool = False

    def as_data(self) -> dict:
        return {"user": public_user(self.principal), "organization": self.tenant.as_dict(), "token": self.token}


Step = Callable[[FlowContext], None]


def run_flow(name: str, steps: Sequence[Step], ctx: FlowContext, *, failure_message: str) -> FlowContext:
    for step in steps:
        try:
            step(ctx)
        except AuthError as exc:
            logger.warning(
                "auth_flow_failed",
                flow=name,
                step=step.__name__,
                error_code=exc.error_code,
                status_code=exc.status_code,
            )
            raise
        except SQLAlchemyError as exc:
            ctx.db.rollback()
            logger.exception("auth_flow_store_error", flow=name, step=step.__name__, error_type=type(exc).__name__)
            raise UnexpectedError(failure_message) from exc
    logger.info("auth_flow_succeeded", flow=name, method=ctx.method, role=ctx.principal.role if ctx.principal else None)
    return ctx


# -- steps ------------------------------------------------------------------


def validate_credentials_input(ctx: FlowContext) -> None:
    if not ctx.identifier or not ctx.password:
        raise InputValidationError("Email and password are required")
    ctx.identifier = normalize_identifier(ctx.identifier)
    if not is_valid_email(ctx.identifier):
        raise InputValidationError("Invalid email format")


def validate_otp_input(ctx: FlowContext) -> None:
    if not ctx.identifier or not ctx.otp_code:
        raise InputValidationError("Identifier and OTP are required")
    ctx.identifier = normalize_identifier(ctx.identifier)
    ctx.otp_code = ctx.otp_code.strip()
    if not is_valid_email(ctx.identifier):
        raise InputValidationError("Invalid email format")


def check_lockout(ctx: FlowContext) -> None:
    if attempts.is_locked(attempts.check_count(ctx.db, ctx.identifier)):
        raise LockoutError(TOO_MANY_ATTEMPTS)


def resolve_principal(ctx: FlowContext) -> None:
    ctx.principal = find_principal(ctx.db, ctx.identifier)
    if ctx.principal is None:
        attempts.record_failure(ctx.db, ctx.identifier)
        raise InvalidCredentialsError(INVALID_CREDENTIALS, error_code="unknown_identifier")


def verify_password(ctx: FlowContext) -> None:
    if not check_password(ctx.principal, ctx.password):
        attempts.record_failure(ctx.db, ctx.identifier)
        raise InvalidCredentialsError(INVALID_CREDENTIALS, error_code="wrong_password")


def verify_otp(ctx: FlowContext) -> None:
    try:
        otp.consume(ctx.db, ctx.identifier, ctx.otp_code)
    except OtpInvalidError:
        attempts.record_failure(ctx.db, ctx.identifier)
        raise


def resolve_otp_principal(ctx: FlowContext) -> None:
    ctx.principal = find_principal(ctx.db, ctx.identifier)
    if ctx.principal is None:
        raise NotFoundError("User not found")


def verify_assertion(ctx: FlowContext) -> None:
    if not ctx.assertion:
        raise InputValidationError("Google token is required")
    ctx.identity = ctx.deps.identity_verifier.verify(ctx.assertion)


def provision_principal(ctx: FlowContext) -> None:
    ctx.principal, ctx.provisioned = resolve_or_provision(ctx.db, ctx.identity)


def check_active(ctx: FlowContext) -> None:
    if not ctx.principal.is_active:
        raise InactiveAccountError("Your account is inactive. Please contact the administrator.")


def resolve_tenant(ctx: FlowContext) -> None:
    if isinstance(ctx.principal, TenantAdminPrincipal):
        ctx.tenant = tenants.resolve(ctx.db, ctx.principal.organization_id)
    else:
        ctx.tenant = SYSTEM_TENANT


def check_tenant_active(ctx: FlowContext) -> None:
    if ctx.tenant.status != "active":
        raise InactiveTenantError("Organization is not active")


def issue_token(ctx: FlowContext) -> None:
    ctx.token = ctx.deps.token_issuer.mint(ctx.principal, ctx.tenant, ctx.method)


def persist_session(ctx: FlowContext) -> None:
    sessions.create(
        ctx.db,
        principal_id=ctx.principal.id,
        token=ctx.token,
        role=ctx.principal.role,
        organization_id=tenant_key(ctx.principal),
        method=ctx.method,
    )


def record_last_login(ctx: FlowContext) -> None:
    touch_last_login(ctx.db, ctx.principal)
    audit(ctx.db, ctx.principal.id, ctx.principal.role, "auth", ctx.principal.id, "login", {"method": ctx.method})
    ctx.db.commit()


def clear_attempts(ctx: FlowContext) -> None:
    attempts.clear(ctx.db, ctx.identifier)


PASSWORD_LOGIN: tuple[Step, ...] = (
    validate_credentials_input,
    check_lockout,
    resolve_principal,
    verify_password,
    check_active,
    resolve_tenant,
    check_tenant_active,
    issue_token,
    persist_session,
    record_last_login,
    clear_attempts,
)

VERIFY_CREDENTIALS: tuple[Step, ...] = (
    validate_credentials_input,
    check_lockout,
    resolve_principal,
    verify_password,
    check_active,
    clear_attempts,
)

OTP_LOGIN: tuple[Step, ...] = (
    validate_otp_input,
    check_lockout,
    verify_otp,
    resolve_otp_principal,
    check_active,
    resolve_tenant,
    check_tenant_active,
    issue_token,
    persist_session,
    record_last_login,
    clear_attempts,
)

FEDERATED_LOGIN: tuple[Step, ...] = (
    verify_assertion,
    provision_principal,
    check_active,
    resolve_tenant,
    check_tenant_active,
    issue_token,
    persist_session,
    record_last_login,
)


def _result(ctx: FlowContext) -> AuthResult:
    return AuthResult(
        principal=ctx.principal,
        tenant=ctx.tenant,
        token=ctx.token,
        method=ctx.method,
        provisioned=ctx.provisioned,
    )


# -- flows ------------------------------------------------------------------


def password_login(db: Session, deps: AuthDeps, identifier: str | None, password: str | None) -> AuthResult:
    ctx = FlowContext(db=db, deps=deps, method="password", identifier=identifier or "", password=password or "")
    return _result(run_flow("password_login", PASSWORD_LOGIN, ctx, failure_message="Login failed"))


def verify_credentials(db: Session, deps: AuthDeps, identifier: str | None, password: str | None) -> Principal:
    ctx = FlowContext(db=db, deps=deps, method="password", identifier=identifier or "", password=password or "")
    run_flow("verify_credentials", VERIFY_CREDENTIALS, ctx, failure_message="Internal server error")
    return ctx.principal


def otp_login(db: Session, deps: AuthDeps, identifier: str | None, code: str | None) -> AuthResult:
    ctx = FlowContext(db=db, deps=deps, method="otp", identifier=identifier or "", otp_code=code or "")
    return _result(run_flow("otp_login", OTP_LOGIN, ctx, failure_message="Failed to verify OTP. Please try again."))


def federated_login(db: Session, deps: AuthDeps, assertion: str | None) -> AuthResult:
    ctx = FlowContext(db=db, deps=deps, method="federated", assertion=assertion or "")
    return _result(run_flow("federated_login", FEDERATED_LOGIN, ctx, failure_message="Google login failed"))


def request_otp(db: Session, deps: AuthDeps, identifier: str | None) -> otp.IssuedOtp:
    identifier = normalize_identifier(identifier)
    if not identifier:
        raise InputValidationError("Email is required")
    if not is_valid_email(identifier):
        raise InputValidationError("Invalid email format")
    try:
        issued = otp.issue(db, identifier)
        audit(db, None, None, "auth", login_key_hash(identifier), "otp_requested", {"otp_id": issued.id})
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("otp_issue_failed")
        raise UnexpectedError("Failed to process OTP request") from exc

    subject, text, html = otp.otp_email(issued.code)
    if not deps.email.send(identifier, subject, text, html):
        # the challenge stays behind and expires unused
        raise UnexpectedError("Failed to send OTP email. Please try again.")
    return issued


def logout(db: Session, token: str | None) -> None:
    if not token:
        raise MissingTokenError("No token provided")
    try:
        sessions.invalidate(db, token)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("logout_failed")
        raise UnexpectedError("Logout failed") from exc
