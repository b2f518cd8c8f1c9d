"""Broker-org to developer-org partnership."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class OrgPartnership(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "org_partnerships"
    __table_args__ = (
        UniqueConstraint("broker_org_id", "developer_org_id", name="uq_org_partnerships_pair"),
    )

    broker_org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    developer_org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    status: str = Field(nullable=False, default="PENDING", index=True)  # PENDING | APPROVED | REJECTED
    message: Optional[str] = None
    requested_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    reviewed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
