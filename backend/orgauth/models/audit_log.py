from datetime import datetime
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from orgauth.core.security import now_utc
from orgauth.db.base import Base

class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[str] = mapped_column(sa.Text, primary_key=True, default=lambda: str(uuid4()))
    # principals live in two tables, so the actor is recorded as (id, role) without a FK
    actor_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    actor_role: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    entity_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    entity_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    action: Mapped[str] = mapped_column(sa.Text, nullable=False)
    data: Mapped[dict] = mapped_column(sa.JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=now_utc)

    __table_args__ = (
        sa.Index("ix_audit_entity", "entity_type", "entity_id"),
        sa.Index("ix_audit_actor_created", "actor_id", "created_at"),
    )
