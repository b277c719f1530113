"""principals, organizations and auth artifacts

Revision ID: 0001_auth_core
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_auth_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("organization_id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("organization_db", sa.Text, nullable=False, unique=True),
        sa.Column("status", sa.Text, nullable=False, server_default=sa.text("'active'")),
        sa.Column("subscription_plan", sa.Text, nullable=False, server_default=sa.text("'free'")),
        sa.Column("enabled_modules", sa.JSON, nullable=False, server_default=sa.text("'[\"basic\"]'")),
        sa.Column("created_by", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status in ('active','suspended','inactive')", name="ck_organization_status"),
    )

    op.create_table(
        "superadmins",
        sa.Column("id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("email", sa.Text, nullable=False, unique=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("password", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.execute("CREATE UNIQUE INDEX ux_superadmins_email_lower ON superadmins (lower(email));")

    op.create_table(
        "organization_admins",
        sa.Column("id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("admin_email", sa.Text, nullable=False, unique=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("password", sa.Text, nullable=True),
        sa.Column("profile_picture", sa.Text, nullable=True),
        sa.Column("auth_provider", sa.Text, nullable=False, server_default=sa.text("'password'")),
        sa.Column("role", sa.Text, nullable=False, server_default=sa.text("'admin'")),
        sa.Column(
            "organization_id",
            sa.Text,
            sa.ForeignKey("organizations.organization_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("auth_provider in ('password','google')", name="ck_org_admin_auth_provider"),
    )
    op.create_index("ix_org_admins_organization", "organization_admins", ["organization_id"])
    op.execute("CREATE UNIQUE INDEX ux_org_admins_email_lower ON organization_admins (lower(admin_email));")

    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("login_key_hash", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_login_attempts_key_created", "login_attempts", ["login_key_hash", sa.text("created_at DESC")])

    op.create_table(
        "otps",
        sa.Column("id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("identifier", sa.Text, nullable=False),
        sa.Column("code_hash", sa.Text, nullable=False),
        sa.Column("expiry_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_used", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_otps_identifier_created", "otps", ["identifier", sa.text("created_at DESC")])

    op.create_table(
        "login_sessions",
        sa.Column("id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column("organization_id", sa.Text, nullable=False),
        sa.Column("token_hash", sa.Text, nullable=False, unique=True),
        sa.Column("role", sa.Text, nullable=False),
        sa.Column("login_method", sa.Text, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("role in ('superadmin','admin')", name="ck_login_sessions_role"),
        sa.CheckConstraint("login_method in ('password','otp','federated')", name="ck_login_sessions_method"),
    )
    op.create_index("ix_login_sessions_user", "login_sessions", ["user_id", "role"])
    op.create_index("ix_login_sessions_expires", "login_sessions", ["expires_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Text, primary_key=True, server_default=sa.text("gen_random_uuid()::text")),
        sa.Column("actor_id", sa.Text, nullable=True),
        sa.Column("actor_role", sa.Text, nullable=True),
        sa.Column("entity_type", sa.Text, nullable=False),
        sa.Column("entity_id", sa.Text, nullable=False),
        sa.Column("action", sa.Text, nullable=False),
        sa.Column("data", sa.JSON, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_actor_created", "audit_log", ["actor_id", "created_at"])


def downgrade():
    op.drop_table("audit_log")
    op.drop_table("login_sessions")
    op.drop_table("otps")
    op.drop_table("login_attempts")
    op.execute("DROP INDEX IF EXISTS ux_org_admins_email_lower;")
    op.drop_table("organization_admins")
    op.execute("DROP INDEX IF EXISTS ux_superadmins_email_lower;")
    op.drop_table("superadmins")
    op.drop_table("organizations")
