from datetime import datetime
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from orgauth.core.security import now_utc
from orgauth.db.base import Base


def _new_id() -> str:
    return str(uuid4())


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=_new_id)
    login_key_hash: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        sa.Index("ix_login_attempts_key_created", "login_key_hash", "created_at"),
    )


class OtpChallenge(Base):
    __tablename__ = "otps"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=_new_id)
    identifier: Mapped[str] = mapped_column(sa.Text, nullable=False)
    code_hash: Mapped[str] = mapped_column(sa.Text, nullable=False)
    expiry_time: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    is_used: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        sa.Index("ix_otps_identifier_created", "identifier", "created_at"),
    )


class LoginSession(Base):
    __tablename__ = "login_sessions"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    organization_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    token_hash: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(sa.Text, nullable=False)
    login_method: Mapped[str] = mapped_column(sa.Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        sa.CheckConstraint("role in ('superadmin','admin')", name="ck_login_sessions_role"),
        sa.CheckConstraint("login_method in ('password','otp','federated')", name="ck_login_sessions_method"),
        sa.Index("ix_login_sessions_user", "user_id", "role"),
        sa.Index("ix_login_sessions_expires", "expires_at"),
    )
