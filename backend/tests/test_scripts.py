from __future__ import annotations

from datetime import timedelta

import sqlalchemy as sa

from orgauth.core.security import login_key_hash, now_utc, session_token_hash, verify_password
from orgauth.models.auth import LoginAttempt, LoginSession, OtpChallenge
from orgauth.models.principal import Superadmin
from orgauth.services import sessions
from scripts import bootstrap_superadmin, cleanup_auth_artifacts


def test_bootstrap_creates_then_updates(db):
    created = bootstrap_superadmin.upsert_superadmin(db, "root@example.com", "First-Password-1", "Root")
    db.commit()
    updated = bootstrap_superadmin.upsert_superadmin(db, "root@example.com", "Second-Password-2", "Root Two")
    db.commit()

    assert updated.id == created.id
    assert db.query(Superadmin).count() == 1
    assert updated.name == "Root Two"
    assert verify_password("Second-Password-2", updated.password)


def test_bootstrap_deactivation_revokes_sessions(db):
    root = bootstrap_superadmin.upsert_superadmin(db, "root@example.com", "First-Password-1", "Root")
    sessions.create(db, principal_id=root.id, token="tok", role="superadmin", organization_id="system", method="password")
    db.commit()

    bootstrap_superadmin.upsert_superadmin(db, "root@example.com", "First-Password-1", "Root", active=False)
    db.commit()

    assert sessions.is_blacklisted(db, "tok")


def test_cleanup_prunes_stale_artifacts(db, session_factory, monkeypatch):
    old = now_utc() - timedelta(days=60)
    db.add(LoginAttempt(login_key_hash=login_key_hash("a@example.com"), created_at=old))
    db.add(LoginAttempt(login_key_hash=login_key_hash("a@example.com"), created_at=now_utc()))
    db.add(OtpChallenge(identifier="a@example.com", code_hash="x", expiry_time=old, created_at=old))
    db.add(OtpChallenge(identifier="a@example.com", code_hash="y", expiry_time=now_utc() + timedelta(minutes=5)))
    db.commit()
    sessions.create(db, principal_id="admin-1", token="stale", role="admin", organization_id="org-1", method="otp")
    sessions.create(db, principal_id="admin-1", token="live", role="admin", organization_id="org-1", method="otp")
    db.execute(
        sa.update(LoginSession)
        .where(LoginSession.login_method == "otp")
        .where(LoginSession.token_hash != session_token_hash("live"))
        .values(expires_at=old)
    )
    db.commit()

    monkeypatch.setattr(cleanup_auth_artifacts, "SessionLocal", session_factory)
    cleanup_auth_artifacts.main()

    assert db.query(LoginAttempt).count() == 1
    assert db.query(OtpChallenge).count() == 1
    assert db.query(LoginSession).count() == 1
    assert not sessions.is_blacklisted(db, "live")
