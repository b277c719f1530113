import sqlalchemy as sa

from orgauth.core.config import settings
from orgauth.core.logging import get_logger
from orgauth.core.security import hash_password
from orgauth.db.session import SessionLocal
from orgauth.models.principal import Superadmin
from orgauth.services import sessions
from orgauth.services.principals import SUPERADMIN, is_valid_email, normalize_identifier

logger = get_logger("bootstrap_superadmin")


def upsert_superadmin(db, email: str, password: str, name: str, active: bool = True) -> Superadmin:
    row = db.execute(sa.select(Superadmin).where(sa.func.lower(Superadmin.email) == email)).scalars().first()
    if row is None:
        row = Superadmin(email=email, name=name, password=hash_password(password), is_active=active)
        db.add(row)
        db.flush()
        logger.info("superadmin_created", superadmin_id=row.id)
        return row
    row.name = name
    row.password = hash_password(password)
    if row.is_active and not active:
        sessions.invalidate_all_for(db, row.id, SUPERADMIN)
    row.is_active = active
    logger.info("superadmin_updated", superadmin_id=row.id, active=active)
    return row


def main():
    email = normalize_identifier(settings.BOOTSTRAP_SUPERADMIN_EMAIL)
    password = settings.BOOTSTRAP_SUPERADMIN_PASSWORD
    if not email or not is_valid_email(email):
        raise SystemExit("BOOTSTRAP_SUPERADMIN_EMAIL must be a valid email")
    if not password or len(password) < 12:
        raise SystemExit("BOOTSTRAP_SUPERADMIN_PASSWORD must be at least 12 characters")

    db = SessionLocal()
    try:
        upsert_superadmin(db, email, password, settings.BOOTSTRAP_SUPERADMIN_NAME)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
