"""initial schema

Revision ID: 3f9a1c7d2b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration creates:
1. Identity tables: users, profiles, user_sessions, security_events
2. Teachers and their url_validations
3. Submissions with review and payment state
4. rate_limits, notifications and realtime_events
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9a1c7d2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUMS = {
    "user_role": ("admin", "teacher"),
    "url_token_type": ("submission", "invitation", "reset", "verification"),
    "submission_status": ("pending", "under_review", "approved", "rejected"),
    "payment_status": ("pending", "processing", "completed", "failed"),
    "recipient_type": ("admin", "teacher"),
    "notification_severity": ("info", "success", "warning", "error"),
    "notification_related_type": ("submission", "payment", "teacher"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Create all tables, enum types and indexes."""
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    # Identity
    op.create_table(
        "users",
        _uuid("id", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "profiles",
        _uuid("id", nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("role", _enum("user_role"), nullable=False, server_default="teacher"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_count", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(op.f("ix_profiles_email"), "profiles", ["email"], unique=True)

    op.create_table(
        "user_sessions",
        _uuid("id", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _uuid("user_id", nullable=False),
        sa.Column("refresh_token_hash", sa.String(length=64), nullable=False),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        _timestamp("last_activity"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("refresh_token_hash"),
    )
    op.create_index(op.f("ix_user_sessions_user_id"), "user_sessions", ["user_id"])
    op.create_index("ix_user_sessions_user_active", "user_sessions", ["user_id", "is_active"])

    op.create_table(
        "security_events",
        _uuid("id", nullable=False),
        _uuid("user_id", nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column(
            "event_data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_security_events_user_created", "security_events", ["user_id", "created_at"]
    )
    op.create_index("ix_security_events_created_at", "security_events", ["created_at"])

    # Teachers and link tokens
    op.create_table(
        "teachers",
        _uuid("id", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        _uuid("profile_id", nullable=True),
        sa.Column("submission_token", sa.String(length=64), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("has_submitted", sa.Boolean(), nullable=False, server_default="false"),
        _uuid("added_by", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["added_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("profile_id"),
        sa.UniqueConstraint("submission_token"),
    )
    op.create_index("ix_teachers_submission_token", "teachers", ["submission_token"])
    op.create_index("ix_teachers_added_by", "teachers", ["added_by"])

    op.create_table(
        "url_validations",
        _uuid("id", nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("token_type", _enum("url_token_type"), nullable=False),
        _uuid("user_id", nullable=True),
        _uuid("teacher_id", nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("is_valid", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("validation_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["teacher_id"], ["teachers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token_hash", "token_type", name="uq_url_validations_token_type"),
    )
    op.create_index("ix_url_validations_teacher_id", "url_validations", ["teacher_id"])
    op.create_index("ix_url_validations_user_id", "url_validations", ["user_id"])
    op.create_index("ix_url_validations_expires_at", "url_validations", ["expires_at"])

    # Submissions
    op.create_table(
        "submissions",
        _uuid("id", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _uuid("teacher_id", nullable=False),
        sa.Column("account_number", sa.String(length=34), nullable=False),
        sa.Column("routing_code", sa.String(length=20), nullable=False),
        sa.Column("account_holder_name", sa.String(length=200), nullable=False),
        sa.Column("subject", sa.String(length=100), nullable=False),
        sa.Column("class_name", sa.String(length=50), nullable=False),
        sa.Column("board", sa.String(length=100), nullable=False),
        sa.Column("exam_type", sa.String(length=100), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("original_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column(
            "status", _enum("submission_status"), nullable=False, server_default="pending"
        ),
        sa.Column("review_notes", sa.Text(), nullable=True),
        _uuid("reviewed_by", nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "payment_status", _enum("payment_status"), nullable=False, server_default="pending"
        ),
        sa.Column("payment_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["teacher_id"], ["teachers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_submissions_teacher_id", "submissions", ["teacher_id"])
    op.create_index("ix_submissions_status", "submissions", ["status"])
    op.create_index("ix_submissions_payment_status", "submissions", ["payment_status"])
    op.create_index("ix_submissions_created_at", "submissions", ["created_at"])

    # Rate limiting, notifications, realtime
    op.create_table(
        "rate_limits",
        _uuid("id", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("blocked_until", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identifier", "action", name="uq_rate_limits_identifier_action"),
    )

    op.create_table(
        "notifications",
        _uuid("id", nullable=False),
        _uuid("recipient_id", nullable=False),
        sa.Column("recipient_type", _enum("recipient_type"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "severity", _enum("notification_severity"), nullable=False, server_default="info"
        ),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        _uuid("related_id", nullable=True),
        sa.Column("related_type", _enum("notification_related_type"), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notifications_recipient_created", "notifications", ["recipient_id", "created_at"]
    )
    op.create_index(
        "ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"]
    )

    op.create_table(
        "realtime_events",
        _uuid("id", nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        _uuid("recipient_id", nullable=True),
        sa.Column("channel", sa.String(length=100), nullable=False),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_realtime_events_channel_created", "realtime_events", ["channel", "created_at"]
    )
    op.create_index("ix_realtime_events_created_at", "realtime_events", ["created_at"])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_table("realtime_events")
    op.drop_table("notifications")
    op.drop_table("rate_limits")
    op.drop_table("submissions")
    op.drop_table("url_validations")
    op.drop_table("teachers")
    op.drop_table("security_events")
    op.drop_table("user_sessions")
    op.drop_table("profiles")
    op.drop_table("users")

    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
