from datetime import datetime
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from orgauth.core.security import now_utc
from orgauth.db.base import Base


def _new_id() -> str:
    return str(uuid4())


class Superadmin(Base):
    __tablename__ = "superadmins"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    password: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    last_login: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)


class OrganizationAdmin(Base):
    __tablename__ = "organization_admins"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=_new_id)
    admin_email: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    password: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    auth_provider: Mapped[str] = mapped_column(sa.Text, nullable=False, default="password")
    role: Mapped[str] = mapped_column(sa.Text, nullable=False, default="admin")
    organization_id: Mapped[str | None] = mapped_column(
        sa.Text, sa.ForeignKey("organizations.organization_id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    last_login: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        sa.CheckConstraint("auth_provider in ('password','google')", name="ck_org_admin_auth_provider"),
        sa.Index("ix_org_admins_organization", "organization_id"),
    )
