"""Messaging and notification schema.

Revision ID: 0001_messaging
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_messaging"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Tenancy tables (owned by the account service, mirrored here)
    # -----------------------------------------------------------------------

    op.create_table(
        "organizations",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)
    op.create_index("ix_organizations_name", "organizations", ["name"])
    op.create_index("ix_organizations_type", "organizations", ["type"])

    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("primary_org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("enable_email_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("language", sa.Text(), nullable=False, server_default="en"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_type", "users", ["type"])

    op.create_table(
        "org_memberships",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="AGENT"),
        sa.Column("status", sa.Text(), nullable=False, server_default="INVITED"),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),
    )
    op.create_index("ix_org_memberships_org_id", "org_memberships", ["org_id"])
    op.create_index("ix_org_memberships_user_id", "org_memberships", ["user_id"])
    op.create_index("ix_org_memberships_status", "org_memberships", ["status"])

    op.create_table(
        "org_partnerships",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("broker_org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("developer_org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="PENDING"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("requested_by", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_by", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("broker_org_id", "developer_org_id", name="uq_org_partnerships_pair"),
    )
    op.create_index("ix_org_partnerships_broker_org_id", "org_partnerships", ["broker_org_id"])
    op.create_index("ix_org_partnerships_developer_org_id", "org_partnerships", ["developer_org_id"])
    op.create_index("ix_org_partnerships_status", "org_partnerships", ["status"])

    op.create_table(
        "properties",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("owner_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("broker_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("developer_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("agency_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("listing_status", sa.Text(), nullable=False, server_default="DRAFT"),
        *_timestamps(),
    )

    # -----------------------------------------------------------------------
    # 2. Threads and messages
    # -----------------------------------------------------------------------

    op.create_table(
        "message_threads",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("property_id", _uuid(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("developer_org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("brokerage_org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("org_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=True),
        sa.Column("dedup_key", sa.String(160), nullable=True),
        sa.Column("created_by", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        *_timestamps(),
        sa.UniqueConstraint("dedup_key", name="uq_message_threads_dedup_key"),
        sa.CheckConstraint("type IN ('DIRECT', 'GROUP', 'BROADCAST')", name="ck_message_threads_type"),
        sa.CheckConstraint(
            "type != 'DIRECT' OR property_id IS NOT NULL",
            name="ck_message_threads_direct_property",
        ),
        sa.CheckConstraint(
            "type != 'BROADCAST' OR (developer_org_id IS NOT NULL AND brokerage_org_id IS NOT NULL)",
            name="ck_message_threads_broadcast_orgs",
        ),
    )
    op.create_index("ix_message_threads_type", "message_threads", ["type"])
    op.create_index("ix_message_threads_property_id", "message_threads", ["property_id"])
    op.create_index("ix_message_threads_last_message_at", "message_threads", ["last_message_at"])
    op.create_index(
        "ix_message_threads_broadcast_pair", "message_threads", ["developer_org_id", "brokerage_org_id"]
    )

    op.create_table(
        "thread_participants",
        sa.Column("thread_id", _uuid(), sa.ForeignKey("message_threads.id"), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_thread_participants_user_id", "thread_participants", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("thread_id", _uuid(), sa.ForeignKey("message_threads.id"), nullable=False),
        sa.Column("property_id", _uuid(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("sender_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("recipient_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_messages_thread_created", "messages", ["thread_id", "created_at"])
    op.create_index("ix_messages_property_id", "messages", ["property_id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])

    # -----------------------------------------------------------------------
    # 3. Notifications
    # -----------------------------------------------------------------------

    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("booking_id", _uuid(), nullable=True),
        # Nullable: rows written before types existed count as GENERAL
        sa.Column("type", sa.Text(), nullable=True, server_default="GENERAL"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])

    op.create_table(
        "notification_counters",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("message_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_notification_counters_user_id"),
        sa.CheckConstraint("count >= 0", name="ck_notification_counters_count"),
        sa.CheckConstraint("message_count >= 0", name="ck_notification_counters_message_count"),
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Reverse dependency order
    op.drop_table("notification_counters")
    op.drop_table("notifications")
    op.drop_table("messages")
    op.drop_table("thread_participants")
    op.drop_table("message_threads")
    op.drop_table("properties")
    op.drop_table("org_partnerships")
    op.drop_table("org_memberships")
    op.drop_table("users")
    op.drop_table("organizations")
