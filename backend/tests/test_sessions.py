from __future__ import annotations

from datetime import timedelta

import pytest
import sqlalchemy as sa

from orgauth.core.config import settings
from orgauth.core.security import now_utc
from orgauth.models.auth import LoginSession
from orgauth.services import sessions


def _create(db, token: str, user_id: str = "admin-1", role: str = "admin", method: str = "password"):
    row = sessions.create(db, principal_id=user_id, token=token, role=role, organization_id="org-1", method=method)
    db.commit()
    return row


def test_unknown_token_is_blacklisted(db):
    assert sessions.is_blacklisted(db, "never-issued")


def test_created_session_is_live_until_invalidated(db):
    _create(db, "tok-1")
    assert not sessions.is_blacklisted(db, "tok-1")

    assert sessions.invalidate(db, "tok-1") is True
    assert sessions.is_blacklisted(db, "tok-1")


def test_invalidate_is_idempotent(db):
    _create(db, "tok-1")
    assert sessions.invalidate(db, "tok-1") is True
    assert sessions.invalidate(db, "tok-1") is False
    assert sessions.invalidate(db, "never-issued") is False


def test_session_past_its_expiry_is_blacklisted(db):
    row = _create(db, "tok-1")
    db.execute(
        sa.update(LoginSession)
        .where(LoginSession.id == row.id)
        .values(expires_at=now_utc() - timedelta(minutes=1))
    )
    db.commit()
    assert sessions.is_blacklisted(db, "tok-1")


def test_rows_store_a_hash_not_the_token(db):
    row = _create(db, "tok-secret")
    assert row.token_hash != "tok-secret"
    assert row.login_method == "password"


def test_unknown_login_method_is_refused(db):
    with pytest.raises(ValueError):
        sessions.create(db, principal_id="x", token="t", role="admin", organization_id="org-1", method="sms")


def test_invalidate_all_for_principal(db):
    _create(db, "tok-1")
    _create(db, "tok-2", method="otp")
    _create(db, "tok-3", user_id="admin-2")

    assert sessions.invalidate_all_for(db, "admin-1", "admin") == 2
    db.commit()
    assert sessions.is_blacklisted(db, "tok-1")
    assert not sessions.is_blacklisted(db, "tok-3")


def test_prune_expired(db):
    row = _create(db, "tok-1")
    _create(db, "tok-2")
    db.execute(
        sa.update(LoginSession)
        .where(LoginSession.id == row.id)
        .values(expires_at=now_utc() - timedelta(days=1))
    )
    db.commit()

    assert sessions.prune_expired(db) == 1


def test_rotating_the_signing_key_keeps_sessions_live(db, monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "old-secret")
    _create(db, "tok-1")

    monkeypatch.setattr(settings, "JWT_SECRET", "new-secret")
    assert not sessions.is_blacklisted(db, "tok-1")
    assert sessions.invalidate(db, "tok-1") is True
