from __future__ import annotations

from datetime import datetime, timedelta

import sqlalchemy as sa
from sqlalchemy.orm import Session

from orgauth.core.config import settings
from orgauth.core.logging import get_logger
from orgauth.core.security import now_utc, session_token_hash
from orgauth.models.auth import LoginSession

logger = get_logger(__name__)

LOGIN_METHODS = {"password", "otp", "federated"}


def create(db: Session, principal_id: str, token: str, role: str, organization_id: str, method: str) -> LoginSession:
    """Stage a session row for ``token``; the caller commits with the rest of the login."""
    if method not in LOGIN_METHODS:
        raise ValueError(f"unknown login method {method!r}")
    issued = now_utc()
    row = LoginSession(
        user_id=principal_id,
        organization_id=organization_id,
        token_hash=session_token_hash(token),
        role=role,
        login_method=method,
        expires_at=issued + timedelta(hours=settings.SESSION_TTL_HOURS),
        created_at=issued,
    )
    db.add(row)
    db.flush()
    return row


def invalidate(db: Session, token: str) -> bool:
    removed = db.execute(
        sa.delete(LoginSession).where(LoginSession.token_hash == session_token_hash(token))
    ).rowcount
    db.commit()
    logger.info("session_invalidated", removed=bool(removed))
    return bool(removed)


def is_blacklisted(db: Session, token: str) -> bool:
    """True unless a live session row backs ``token``.

    Covers tokens that were logged out, never issued, or whose session ran
    past its own expiry even if the token itself still verifies.
    """
    live = db.execute(
        sa.select(LoginSession.id)
        .where(LoginSession.token_hash == session_token_hash(token))
        .where(LoginSession.expires_at > now_utc())
    ).first()
    return live is None


def invalidate_all_for(db: Session, principal_id: str, role: str) -> int:
    return db.execute(
        sa.delete(LoginSession)
        .where(LoginSession.user_id == principal_id)
        .where(LoginSession.role == role)
    ).rowcount


def prune_expired(db: Session, now: datetime | None = None) -> int:
    return db.execute(sa.delete(LoginSession).where(LoginSession.expires_at < (now or now_utc()))).rowcount
