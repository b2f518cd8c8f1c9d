"""Notification rows and the per-user unread counter."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Notification(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_user_created", "user_id", "created_at"),
        sa.Index("ix_notifications_user_unread", "user_id", "is_read"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    message: str = Field(nullable=False)
    link: Optional[str] = None
    booking_id: Optional[uuid.UUID] = None
    # GENERAL | MESSAGE; NULL on legacy rows, counted as GENERAL
    type: Optional[str] = Field(default="GENERAL", nullable=True)
    is_read: bool = Field(default=False, nullable=False)


class NotificationCounter(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notification_counters"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_notification_counters_count"),
        CheckConstraint("message_count >= 0", name="ck_notification_counters_message_count"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, unique=True)
    count: int = Field(default=0, nullable=False)
    message_count: int = Field(default=0, nullable=False)
