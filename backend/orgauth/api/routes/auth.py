from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orgauth.api.deps import CurrentPrincipal, bearer_token, get_auth_deps, get_current_principal
from orgauth.db.session import get_db
from orgauth.schemas.auth import Envelope, GoogleLoginIn, LoginIn, OTPRequestIn, OTPVerifyIn, SessionDataOut
from orgauth.services import auth_flow, tenants
from orgauth.services.auth_flow import AuthDeps, AuthResult
from orgauth.services.principals import public_user, tenant_key

router = APIRouter()


def _session_envelope(result: AuthResult, message: str) -> Envelope:
    data = SessionDataOut(**result.as_data()).model_dump()
    return Envelope(success=True, message=message, data=data)


@router.post("/login", response_model=Envelope)
def login(payload: LoginIn, db: Session = Depends(get_db), deps: AuthDeps = Depends(get_auth_deps)):
    result = auth_flow.password_login(db, deps, payload.identifier, payload.password)
    return _session_envelope(result, "Login successful")


@router.post("/login/verify", response_model=Envelope)
def verify_credentials(payload: LoginIn, db: Session = Depends(get_db), deps: AuthDeps = Depends(get_auth_deps)):
    principal = auth_flow.verify_credentials(db, deps, payload.identifier, payload.password)
    return Envelope(
        success=True,
        message="Credentials verified successfully",
        data={
            "id": principal.id,
            "email": principal.email,
            "role": principal.role,
            "organization_id": tenant_key(principal),
        },
    )


@router.post("/login/logout", response_model=Envelope)
def logout(token: str | None = Depends(bearer_token), db: Session = Depends(get_db)):
    auth_flow.logout(db, token)
    return Envelope(success=True, message="Logout successful")


@router.post("/otp/send", response_model=Envelope)
def otp_send(payload: OTPRequestIn, db: Session = Depends(get_db), deps: AuthDeps = Depends(get_auth_deps)):
    auth_flow.request_otp(db, deps, payload.identifier)
    return Envelope(success=True, message="OTP sent successfully to your email")


@router.post("/otp/verify", response_model=Envelope)
def otp_verify(payload: OTPVerifyIn, db: Session = Depends(get_db), deps: AuthDeps = Depends(get_auth_deps)):
    result = auth_flow.otp_login(db, deps, payload.identifier, payload.otp)
    return _session_envelope(result, "OTP verified successfully")


@router.post("/google", response_model=Envelope)
def google_login(payload: GoogleLoginIn, db: Session = Depends(get_db), deps: AuthDeps = Depends(get_auth_deps)):
    result = auth_flow.federated_login(db, deps, payload.token)
    return _session_envelope(result, "Google login successful")


@router.get("/me", response_model=Envelope)
def me(current: CurrentPrincipal = Depends(get_current_principal), db: Session = Depends(get_db)):
    tenant = tenants.get_tenant(db, current.claims.organization_id)
    return Envelope(
        success=True,
        data={
            "user": public_user(current.principal),
            "organization": tenant.as_dict() if tenant else None,
            "login_method": current.claims.method,
            "expires_at": current.claims.expires_at.isoformat(),
        },
    )
