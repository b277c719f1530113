from __future__ import annotations

from datetime import datetime, timedelta

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from orgauth.core.config import settings
from orgauth.core.logging import get_logger
from orgauth.core.security import login_key_hash, now_utc
from orgauth.models.auth import LoginAttempt

logger = get_logger(__name__)

LOCKOUT_THRESHOLD = 5
LOCKOUT_WINDOW = timedelta(minutes=15)


def check_count(db: Session, identifier: str) -> int:
    """Attempts recorded for ``identifier`` inside the trailing lockout window.

    A storage error never aborts the login: by default it counts as zero
    attempts (fail-open); with ``LOCKOUT_FAIL_CLOSED`` it counts as a full
    window so the caller is locked out until the store recovers.
    """
    since = now_utc() - LOCKOUT_WINDOW
    try:
        return int(db.execute(
            sa.select(sa.func.count())
            .select_from(LoginAttempt)
            .where(LoginAttempt.login_key_hash == login_key_hash(identifier))
            .where(LoginAttempt.created_at > since)
        ).scalar_one())
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "login_attempts_read_failed",
            error=str(exc),
            fail_closed=settings.LOCKOUT_FAIL_CLOSED,
        )
        return LOCKOUT_THRESHOLD if settings.LOCKOUT_FAIL_CLOSED else 0


def is_locked(count: int) -> bool:
    return count >= LOCKOUT_THRESHOLD


def record_failure(db: Session, identifier: str) -> None:
    try:
        db.add(LoginAttempt(login_key_hash=login_key_hash(identifier), created_at=now_utc()))
        db.commit()
        logger.info("login_attempt_recorded", identifier=identifier)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("login_attempt_record_failed", identifier=identifier, error=str(exc))


def clear(db: Session, identifier: str) -> None:
    try:
        db.execute(sa.delete(LoginAttempt).where(LoginAttempt.login_key_hash == login_key_hash(identifier)))
        db.commit()
        logger.info("login_attempts_cleared", identifier=identifier)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("login_attempts_clear_failed", identifier=identifier, error=str(exc))


def prune(db: Session, older_than: datetime) -> int:
    return db.execute(sa.delete(LoginAttempt).where(LoginAttempt.created_at < older_than)).rowcount
