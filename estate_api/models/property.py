"""Property listing (owned by the listings service; read-only here)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Property(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "properties"

    name: str = Field(nullable=False)
    # Designated contacts; any of them may be unset
    owner_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    broker_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    developer_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    agency_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    listing_status: str = Field(nullable=False, default="DRAFT")  # DRAFT | PENDING_REVIEW | PUBLISHED | ...

    def designated_contacts(self) -> set[uuid.UUID]:
        return {
            uid
            for uid in (self.owner_id, self.broker_id, self.developer_id, self.agency_id)
            if uid is not None
        }
