"""User model (owned by the account service; read-only here)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: Optional[str] = Field(default=None, unique=True, index=True)
    full_name: str = Field(nullable=False)
    type: str = Field(nullable=False, index=True)  # ADMIN | BROKER | DEVELOPER | OWNER | AGENCY | USER
    primary_org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id")
    enable_email_notifications: bool = Field(default=True, nullable=False)
    language: str = Field(default="en", nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
