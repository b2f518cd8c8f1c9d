"""
Broker/developer partnership schemas.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import OrgPartnershipStatus


class PartnershipCreateRequest(BaseModel):
    developer_org_id: uuid.UUID
    # Defaults to the requesting broker's primary organization
    broker_org_id: Optional[uuid.UUID] = None
    message: Optional[str] = Field(None, max_length=1000)


class PartnershipReviewRequest(BaseModel):
    status: OrgPartnershipStatus


class PartnershipResponse(BaseModel):
    id: uuid.UUID
    broker_org_id: uuid.UUID
    developer_org_id: uuid.UUID
    status: OrgPartnershipStatus
    message: Optional[str] = None
    requested_by: Optional[uuid.UUID] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PartnershipListResponse(BaseModel):
    data: list[PartnershipResponse]
