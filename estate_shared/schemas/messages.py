"""
Messaging schemas shared between the API server and its clients.

Covers: message creation, group thread creation, broadcast requests and
results, and the thread summary union (one variant per thread type).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .common import Pagination, ThreadType


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class CreateMessageRequest(BaseModel):
    """Either ``thread_id`` or ``property_id`` + ``recipient_id`` addresses the message."""

    message: str = Field(..., max_length=5000)
    thread_id: Optional[uuid.UUID] = None
    property_id: Optional[uuid.UUID] = None
    recipient_id: Optional[uuid.UUID] = None


class CreateThreadRequest(BaseModel):
    title: str = Field(..., max_length=200)
    # Raw strings: unparsable entries are dropped rather than rejected
    participants: list[str] = Field(default_factory=list)
    org_id: Optional[uuid.UUID] = None


class BroadcastRequest(BaseModel):
    message: str = Field(..., max_length=5000)
    developer_org_id: Optional[uuid.UUID] = None
    title: Optional[str] = Field(None, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class BroadcastResult(BaseModel):
    delivered: int = 0
    threads: int = 0


class UserSummary(BaseModel):
    id: uuid.UUID
    full_name: str
    type: str

    model_config = {"from_attributes": True}


class OrgSummary(BaseModel):
    id: uuid.UUID
    name: str
    type: str

    model_config = {"from_attributes": True}


class PropertySummary(BaseModel):
    id: uuid.UUID
    name: str
    listing_status: str

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: uuid.UUID
    thread_id: uuid.UUID
    property_id: Optional[uuid.UUID] = None
    sender_id: uuid.UUID
    recipient_id: Optional[uuid.UUID] = None
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class _ThreadBase(BaseModel):
    id: uuid.UUID
    title: Optional[str] = None
    participants: list[UserSummary] = Field(default_factory=list)
    created_by: Optional[uuid.UUID] = None
    last_message_at: Optional[datetime] = None
    last_message: Optional[MessageResponse] = None
    other_user: Optional[UserSummary] = None


class DirectThreadResponse(_ThreadBase):
    type: Literal[ThreadType.DIRECT] = ThreadType.DIRECT
    property: PropertySummary


class GroupThreadResponse(_ThreadBase):
    type: Literal[ThreadType.GROUP] = ThreadType.GROUP
    org_id: Optional[uuid.UUID] = None


class BroadcastThreadResponse(_ThreadBase):
    type: Literal[ThreadType.BROADCAST] = ThreadType.BROADCAST
    developer_org: OrgSummary
    brokerage_org: OrgSummary


ThreadResponse = Annotated[
    Union[DirectThreadResponse, GroupThreadResponse, BroadcastThreadResponse],
    Field(discriminator="type"),
]


class MessageWithContext(MessageResponse):
    """A message populated with its thread, sender and recipient summaries."""

    thread: ThreadResponse
    sender: Optional[UserSummary] = None
    recipient: Optional[UserSummary] = None


class MessageListResponse(BaseModel):
    data: list[MessageWithContext]
    pagination: Pagination


class ThreadListResponse(BaseModel):
    data: list[ThreadResponse]
    pagination: Pagination
