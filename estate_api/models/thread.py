"""Message thread model and its participant set.

One table holds all three thread variants; ``type`` is the discriminant and the
CHECK constraints pin each variant's anchor columns:

- DIRECT: ``property_id``
- BROADCAST: ``developer_org_id`` + ``brokerage_org_id``
- GROUP: optional ``org_id``

``dedup_key`` is unique and set only for DIRECT and BROADCAST threads, so a
concurrent second insert for the same anchor fails at the store instead of
producing a duplicate thread.
"""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, utcnow


class MessageThread(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "message_threads"
    __table_args__ = (
        CheckConstraint(
            "type IN ('DIRECT', 'GROUP', 'BROADCAST')",
            name="ck_message_threads_type",
        ),
        CheckConstraint(
            "type != 'DIRECT' OR property_id IS NOT NULL",
            name="ck_message_threads_direct_property",
        ),
        CheckConstraint(
            "type != 'BROADCAST' OR (developer_org_id IS NOT NULL AND brokerage_org_id IS NOT NULL)",
            name="ck_message_threads_broadcast_orgs",
        ),
        sa.Index("ix_message_threads_broadcast_pair", "developer_org_id", "brokerage_org_id"),
    )

    type: str = Field(nullable=False, index=True)
    title: Optional[str] = None
    property_id: Optional[uuid.UUID] = Field(default=None, foreign_key="properties.id", index=True)
    developer_org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id")
    brokerage_org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id")
    org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id")
    dedup_key: Optional[str] = Field(default=None, unique=True, max_length=160)
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    last_message_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_type=sa.DateTime(timezone=True),
    )


class ThreadParticipant(SQLModel, table=True):
    __tablename__ = "thread_participants"

    thread_id: uuid.UUID = Field(foreign_key="message_threads.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    added_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
