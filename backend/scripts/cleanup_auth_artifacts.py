from datetime import timedelta

from orgauth.core.config import settings
from orgauth.core.logging import get_logger
from orgauth.core.security import now_utc
from orgauth.db.session import SessionLocal
from orgauth.services import attempts, otp, sessions

logger = get_logger("cleanup_auth_artifacts")


def main():
    db = SessionLocal()
    try:
        now = now_utc()
        otp_cutoff = now - timedelta(days=settings.AUTH_RETENTION_DAYS)
        # attempts outside the lockout window no longer count toward anything
        attempts_cutoff = now - attempts.LOCKOUT_WINDOW

        deleted_attempts = attempts.prune(db, attempts_cutoff)
        deleted_otps = otp.prune(db, otp_cutoff)
        deleted_sessions = sessions.prune_expired(db, now)

        db.commit()
        logger.info(
            "auth_cleanup_completed",
            login_attempts=deleted_attempts,
            otps=deleted_otps,
            login_sessions=deleted_sessions,
        )
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
