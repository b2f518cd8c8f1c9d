"""User-Organization membership."""

import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class OrgMembership(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "org_memberships"
    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),
    )

    org_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    role: str = Field(nullable=False, default="AGENT")  # OWNER_ADMIN | ADMIN | MANAGER | AGENT | ...
    status: str = Field(nullable=False, default="INVITED", index=True)  # INVITED | ACTIVE | REMOVED
