"""
Partnership endpoints.

POST /api/v1/partnerships                   — Brokerage requests a partnership with a developer
GET  /api/v1/orgs/{org_id}/partnerships     — Partnerships of an org (either side)
PUT  /api/v1/partnerships/{partnership_id}  — Developer approves or rejects
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.auth import require_actor
from estate_api.core.database import get_session
from estate_api.models.user import User
from estate_api.services import partnerships as partnership_service
from estate_shared.schemas.partnerships import (
    PartnershipCreateRequest,
    PartnershipListResponse,
    PartnershipResponse,
    PartnershipReviewRequest,
)

router = APIRouter()


@router.post("/partnerships", response_model=PartnershipResponse)
async def request_partnership(
    body: PartnershipCreateRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    partnership = await partnership_service.request_partnership(
        session,
        actor,
        body.developer_org_id,
        broker_org_id=body.broker_org_id,
        message=body.message,
    )
    return PartnershipResponse.model_validate(partnership)


@router.get("/orgs/{org_id}/partnerships", response_model=PartnershipListResponse)
async def list_partnerships(
    org_id: uuid.UUID,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    rows = await partnership_service.list_org_partnerships(session, actor, org_id)
    return PartnershipListResponse(data=[PartnershipResponse.model_validate(r) for r in rows])


@router.put("/partnerships/{partnership_id}", response_model=PartnershipResponse)
async def review_partnership(
    partnership_id: uuid.UUID,
    body: PartnershipReviewRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    partnership = await partnership_service.review_partnership(session, actor, partnership_id, body.status)
    return PartnershipResponse.model_validate(partnership)
