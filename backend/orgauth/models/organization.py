from datetime import datetime
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from orgauth.core.security import now_utc
from orgauth.db.base import Base


class Organization(Base):
    __tablename__ = "organizations"

    organization_id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    organization_db: Mapped[str] = mapped_column(sa.Text, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(sa.Text, nullable=False, default="active")
    subscription_plan: Mapped[str] = mapped_column(sa.Text, nullable=False, default="free")
    enabled_modules: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=lambda: ["basic"])
    # not a FK: the creating admin row references this table
    created_by: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        sa.CheckConstraint("status in ('active','suspended','inactive')", name="ck_organization_status"),
    )
