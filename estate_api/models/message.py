"""Message model (append-only)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class Message(SQLModel, table=True):
    __tablename__ = "messages"
    __table_args__ = (
        sa.Index("ix_messages_thread_created", "thread_id", "created_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    thread_id: uuid.UUID = Field(foreign_key="message_threads.id", nullable=False)
    property_id: Optional[uuid.UUID] = Field(default=None, foreign_key="properties.id", index=True)
    sender_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    recipient_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    message: str = Field(nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
