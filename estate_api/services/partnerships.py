"""
Partnership service — brokerages request, developers approve or reject.

Only APPROVED partnerships receive broadcasts.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from estate_api.core.errors import BadRequest, Forbidden, NotFound
from estate_api.models.base import utcnow
from estate_api.models.org_partnership import OrgPartnership
from estate_api.models.organization import Organization
from estate_api.models.user import User
from estate_api.services.membership import has_management_role
from estate_shared.schemas.common import OrganizationType, OrgPartnershipStatus, UserType

log = structlog.get_logger()


async def _get_pair(
    session: AsyncSession,
    broker_org_id: uuid.UUID,
    developer_org_id: uuid.UUID,
) -> Optional[OrgPartnership]:
    result = await session.execute(
        select(OrgPartnership).where(
            OrgPartnership.broker_org_id == broker_org_id,
            OrgPartnership.developer_org_id == developer_org_id,
        )
    )
    return result.scalar_one_or_none()


async def request_partnership(
    session: AsyncSession,
    actor: User,
    developer_org_id: uuid.UUID,
    broker_org_id: Optional[uuid.UUID] = None,
    message: Optional[str] = None,
) -> OrgPartnership:
    """Request a partnership; an existing one for the pair is returned unchanged."""
    broker_org_id = broker_org_id or actor.primary_org_id
    if broker_org_id is None:
        raise BadRequest("Broker organization is required")

    developer = await session.get(Organization, developer_org_id)
    broker = await session.get(Organization, broker_org_id)
    if developer is None or broker is None:
        raise NotFound()
    if (
        developer.type != OrganizationType.DEVELOPER.value
        or broker.type != OrganizationType.BROKERAGE.value
    ):
        raise BadRequest("Organization type not allowed")

    if actor.type != UserType.ADMIN.value:
        if actor.type != UserType.BROKER.value or actor.primary_org_id != broker.id:
            raise Forbidden()

    existing = await _get_pair(session, broker.id, developer.id)
    if existing is not None:
        return existing

    partnership = OrgPartnership(
        broker_org_id=broker.id,
        developer_org_id=developer.id,
        status=OrgPartnershipStatus.PENDING.value,
        message=message,
        requested_by=actor.id,
    )
    try:
        async with session.begin_nested():
            session.add(partnership)
            await session.flush()
    except IntegrityError:
        winner = await _get_pair(session, broker.id, developer.id)
        if winner is None:
            raise
        return winner
    await session.commit()

    log.info(
        "partnership.requested",
        partnership_id=str(partnership.id),
        broker_org_id=str(broker.id),
        developer_org_id=str(developer.id),
    )
    return partnership


async def list_org_partnerships(
    session: AsyncSession,
    actor: User,
    org_id: uuid.UUID,
) -> list[OrgPartnership]:
    """Partnerships where the org is either side, most recently updated first."""
    if not await has_management_role(session, org_id, actor):
        raise Forbidden()
    result = await session.execute(
        select(OrgPartnership)
        .where(
            sa.or_(
                OrgPartnership.broker_org_id == org_id,
                OrgPartnership.developer_org_id == org_id,
            )
        )
        .order_by(OrgPartnership.updated_at.desc(), OrgPartnership.id.desc())
    )
    return list(result.scalars().all())


async def review_partnership(
    session: AsyncSession,
    actor: User,
    partnership_id: uuid.UUID,
    status: OrgPartnershipStatus,
) -> OrgPartnership:
    partnership = await session.get(OrgPartnership, partnership_id)
    if partnership is None:
        raise NotFound()
    if not await has_management_role(session, partnership.developer_org_id, actor):
        raise Forbidden()

    partnership.status = status.value
    partnership.reviewed_by = actor.id
    partnership.reviewed_at = utcnow()
    session.add(partnership)
    await session.commit()
    await session.refresh(partnership)

    log.info(
        "partnership.reviewed",
        partnership_id=str(partnership.id),
        status=status.value,
        reviewed_by=str(actor.id),
    )
    return partnership
