from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta

import sqlalchemy as sa
from sqlalchemy.orm import Session

from orgauth.core.config import settings
from orgauth.core.errors import NotFoundError, OtpInvalidError, OtpNotFoundError
from orgauth.core.logging import get_logger
from orgauth.core.security import now_utc, random_otp_code
from orgauth.models.auth import OtpChallenge
from orgauth.services.principals import Principal, find_principal, normalize_identifier

logger = get_logger(__name__)

OTP_INVALID_MESSAGE = "Invalid or expired OTP. Please request a new one."


@dataclass(frozen=True)
class IssuedOtp:
    id: str
    identifier: str
    code: str
    expires_at: datetime


def otp_hash(code: str) -> str:
    raw = (settings.LOGIN_KEY_PEPPER + ":otp:" + code).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def issue(db: Session, identifier: str) -> IssuedOtp:
    """Persist a fresh challenge for ``identifier`` and return its plaintext code.

    Earlier unused challenges are left alone; verification only ever looks at
    the newest one, so they expire unreachable.
    """
    identifier = normalize_identifier(identifier)
    if find_principal(db, identifier) is None:
        raise NotFoundError("User not found")

    code = random_otp_code()
    row = OtpChallenge(
        identifier=identifier,
        code_hash=otp_hash(code),
        expiry_time=now_utc() + timedelta(minutes=settings.OTP_TTL_MINUTES),
        created_at=now_utc(),
    )
    db.add(row)
    db.commit()
    logger.info("otp_issued", identifier=identifier, otp_id=row.id)
    return IssuedOtp(id=row.id, identifier=identifier, code=code, expires_at=row.expiry_time)


def _latest_live_challenge(db: Session, identifier: str) -> OtpChallenge | None:
    return db.execute(
        sa.select(OtpChallenge)
        .where(OtpChallenge.identifier == identifier)
        .where(OtpChallenge.is_used.is_(False))
        .where(OtpChallenge.expiry_time > now_utc())
        .order_by(OtpChallenge.created_at.desc())
        .limit(1)
    ).scalars().first()


def consume(db: Session, identifier: str, code: str) -> str:
    """Mark the newest live challenge used if ``code`` matches it; returns its id.

    The used flag is flipped with a conditional update and the affected row
    count decides the winner, so two concurrent verifiers cannot both succeed.
    """
    identifier = normalize_identifier(identifier)
    challenge = _latest_live_challenge(db, identifier)
    if challenge is None:
        raise OtpNotFoundError(OTP_INVALID_MESSAGE)
    if not hmac.compare_digest(challenge.code_hash, otp_hash(code)):
        raise OtpInvalidError(OTP_INVALID_MESSAGE)

    claimed = db.execute(
        sa.update(OtpChallenge)
        .where(OtpChallenge.id == challenge.id)
        .where(OtpChallenge.is_used.is_(False))
        .values(is_used=True)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if claimed != 1:
        logger.warning("otp_consume_lost_race", identifier=identifier, otp_id=challenge.id)
        raise OtpNotFoundError(OTP_INVALID_MESSAGE)
    logger.info("otp_consumed", identifier=identifier, otp_id=challenge.id)
    return challenge.id


def verify(db: Session, identifier: str, code: str) -> Principal:
    consume(db, identifier, code)
    principal = find_principal(db, identifier)
    if principal is None:
        raise NotFoundError("User not found")
    return principal


def prune(db: Session, older_than: datetime) -> int:
    return db.execute(
        sa.delete(OtpChallenge).where(
            sa.or_(
                sa.and_(OtpChallenge.is_used.is_(True), OtpChallenge.created_at < older_than),
                OtpChallenge.expiry_time < older_than,
            )
        )
    ).rowcount


def otp_email(code: str) -> tuple[str, str, str]:
    subject = "Your Login Verification Code"
    text = f"Your verification code is: {code}. This code will expire in {settings.OTP_TTL_MINUTES} minutes."
    html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #333;">Your Verification Code</h2>
    <p>Your verification code is:</p>
    <div style="background-color: #f4f4f4; padding: 10px; text-align: center; font-size: 24px; letter-spacing: 5px; margin: 20px 0;">
        <strong>{code}</strong>
    </div>
    <p>This code will expire in {settings.OTP_TTL_MINUTES} minutes.</p>
    <p>If you didn't request this code, please ignore this email.</p>
</div>
"""
    return subject, text, html
