from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import OperationalError

from orgauth.core.config import settings
from orgauth.core.security import login_key_hash, now_utc
from orgauth.models.auth import LoginAttempt
from orgauth.services import attempts


class BrokenSession:
    def __init__(self):
        self.rolled_back = 0

    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("store down"))

    def add(self, *args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("store down"))

    def rollback(self):
        self.rolled_back += 1


def test_count_only_covers_the_trailing_window(db):
    key = login_key_hash("a@example.com")
    db.add(LoginAttempt(login_key_hash=key, created_at=now_utc() - timedelta(minutes=16)))
    db.add(LoginAttempt(login_key_hash=key, created_at=now_utc() - timedelta(minutes=14)))
    db.commit()

    assert attempts.check_count(db, "a@example.com") == 1


def test_lockout_engages_at_five_failures(db):
    for _ in range(4):
        attempts.record_failure(db, "a@example.com")
    assert not attempts.is_locked(attempts.check_count(db, "a@example.com"))

    attempts.record_failure(db, "a@example.com")
    assert attempts.is_locked(attempts.check_count(db, "a@example.com"))


def test_counts_are_per_identifier(db):
    for _ in range(5):
        attempts.record_failure(db, "a@example.com")
    assert attempts.check_count(db, "b@example.com") == 0


def test_clear_resets_the_counter(db):
    for _ in range(3):
        attempts.record_failure(db, "a@example.com")
    attempts.clear(db, "a@example.com")
    assert attempts.check_count(db, "a@example.com") == 0


def test_raw_identifier_is_never_stored(db):
    attempts.record_failure(db, "a@example.com")
    row = db.query(LoginAttempt).one()
    assert "a@example.com" not in row.login_key_hash
    assert row.login_key_hash == login_key_hash("a@example.com")


def test_read_failure_fails_open_by_default(monkeypatch):
    monkeypatch.setattr(settings, "LOCKOUT_FAIL_CLOSED", False)
    broken = BrokenSession()
    assert attempts.check_count(broken, "a@example.com") == 0
    assert broken.rolled_back == 1


def test_read_failure_can_fail_closed(monkeypatch):
    monkeypatch.setattr(settings, "LOCKOUT_FAIL_CLOSED", True)
    count = attempts.check_count(BrokenSession(), "a@example.com")
    assert attempts.is_locked(count)


def test_write_failures_are_swallowed():
    broken = BrokenSession()
    attempts.record_failure(broken, "a@example.com")
    attempts.clear(broken, "a@example.com")
    assert broken.rolled_back == 2


def test_prune_drops_rows_older_than_cutoff(db):
    key = login_key_hash("a@example.com")
    db.add(LoginAttempt(login_key_hash=key, created_at=now_utc() - timedelta(days=2)))
    db.add(LoginAttempt(login_key_hash=key, created_at=now_utc()))
    db.commit()

    assert attempts.prune(db, now_utc() - timedelta(days=1)) == 1
    db.commit()
    assert db.query(LoginAttempt).count() == 1
