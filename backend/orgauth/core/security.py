from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from orgauth.core.config import Settings, settings
from orgauth.core.errors import TokenExpiredError, TokenInvalidError

if TYPE_CHECKING:
    from orgauth.services.principals import Principal
    from orgauth.services.tenants import TenantInfo

ALGO = "HS256"

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def ensure_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def login_key_hash(identifier: str) -> str:
    raw = (settings.LOGIN_KEY_PEPPER + ":login:" + identifier).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()

def session_token_hash(token: str) -> str:
    # independent of the signing key so rotation keeps sessions alive
    raw = (settings.LOGIN_KEY_PEPPER + ":session:" + token).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()

def random_otp_code() -> str:
    # 6 digits, never a leading zero
    return str(100_000 + secrets.randbelow(900_000))

def hash_password(password: str) -> str:
    raw = password.encode("utf-8")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@dataclass(frozen=True)
class TokenConfig:
    secret: str
    algorithm: str = ALGO
    ttl: timedelta = timedelta(hours=24)
    issuer: str = "orgauth"
    previous_secrets: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "TokenConfig":
        previous = tuple(s.strip() for s in cfg.JWT_PREVIOUS_SECRETS.split(",") if s.strip())
        return cls(
            secret=cfg.JWT_SECRET,
            ttl=timedelta(hours=cfg.TOKEN_TTL_HOURS),
            issuer=cfg.JWT_ISSUER,
            previous_secrets=previous,
        )


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: str
    organization_id: str
    organization_db: str
    method: str
    jti: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """Mints and verifies the signed bearer tokens handed out by every login flow."""

    def __init__(self, config: TokenConfig):
        self.config = config

    def mint(self, principal: "Principal", tenant: "TenantInfo", method: str) -> str:
        issued = now_utc()
        payload = {
            "sub": principal.id,
            "userId": principal.id,
            "email": principal.email,
            "role": principal.role,
            "organizationId": tenant.id,
            "organizationDb": tenant.db_handle,
            "method": method,
            "iss": self.config.issuer,
            "jti": uuid4().hex,
            "iat": int(issued.timestamp()),
            "exp": int((issued + self.config.ttl).timestamp()),
        }
        return jwt.encode(payload, self.config.secret, algorithm=self.config.algorithm)

    def _decode(self, token: str) -> dict:
        last_error: JWTError | None = None
        for key in (self.config.secret, *self.config.previous_secrets):
            try:
                return jwt.decode(
                    token,
                    key,
                    algorithms=[self.config.algorithm],
                    issuer=self.config.issuer,
                    options={"verify_aud": False},
                )
            except ExpiredSignatureError:
                raise TokenExpiredError("Token has expired")
            except JWTError as exc:
                last_error = exc
        raise TokenInvalidError("Invalid or expired token") from last_error

    def verify(self, token: str) -> TokenClaims:
        payload = self._decode(token)
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenInvalidError("Invalid or expired token")
        # independent of the library's own exp validation
        if now_utc().timestamp() >= exp:
            raise TokenExpiredError("Token has expired")
        try:
            return TokenClaims(
                user_id=str(payload["userId"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                organization_id=str(payload["organizationId"]),
                organization_db=str(payload["organizationDb"]),
                method=str(payload["method"]),
                jti=str(payload["jti"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError("Invalid or expired token") from exc
