"""
Broadcast fan-out — one developer message to every approved partner brokerage.

Each partner is handled in turn and commits on its own: a failure part-way
leaves earlier partners fully delivered. Re-running a broadcast re-sends the
message and re-notifies every member, so callers must not retry blindly.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from estate_api.core.errors import BadRequest, Forbidden
from estate_api.models.org_partnership import OrgPartnership
from estate_api.models.organization import Organization
from estate_api.models.user import User
from estate_api.services.email import EmailDispatcher
from estate_api.services.membership import (
    is_active_member,
    list_active_member_user_ids,
    list_developer_orgs,
)
from estate_api.services.messages import append_message, notify_thread_participants
from estate_api.services.threads import resolve_broadcast_thread
from estate_shared.schemas.common import OrganizationType, OrgPartnershipStatus
from estate_shared.schemas.messages import BroadcastResult

log = structlog.get_logger()


async def resolve_developer_org(
    session: AsyncSession,
    actor: User,
    developer_org_id: Optional[uuid.UUID] = None,
) -> Organization:
    """The developer org the actor broadcasts for; Forbidden when there is none."""
    if developer_org_id is not None:
        org = await session.get(Organization, developer_org_id)
        if (
            org is None
            or org.type != OrganizationType.DEVELOPER.value
            or not await is_active_member(session, org.id, actor.id)
        ):
            raise Forbidden()
        return org

    orgs = await list_developer_orgs(session, actor.id)
    if not orgs:
        raise Forbidden()
    return orgs[0]


async def list_approved_partnerships(
    session: AsyncSession,
    developer_org_id: uuid.UUID,
) -> list[OrgPartnership]:
    result = await session.execute(
        select(OrgPartnership)
        .where(
            OrgPartnership.developer_org_id == developer_org_id,
            OrgPartnership.status == OrgPartnershipStatus.APPROVED.value,
        )
        .order_by(OrgPartnership.created_at, OrgPartnership.id)
    )
    return list(result.scalars().all())


async def broadcast(
    session: AsyncSession,
    actor: User,
    *,
    message: Optional[str],
    developer_org_id: Optional[uuid.UUID] = None,
    title: Optional[str] = None,
    mailer: Optional[EmailDispatcher] = None,
) -> BroadcastResult:
    body = (message or "").strip()
    if not body:
        raise BadRequest("Message is required")

    developer_org = await resolve_developer_org(session, actor, developer_org_id)
    partnerships = await list_approved_partnerships(session, developer_org.id)

    result = BroadcastResult()
    for partnership in partnerships:
        brokerage = await session.get(Organization, partnership.broker_org_id)
        if brokerage is None:
            continue
        member_ids = await list_active_member_user_ids(session, brokerage.id)
        if not member_ids:
            continue

        thread, created = await resolve_broadcast_thread(
            session,
            actor,
            developer_org,
            brokerage,
            member_ids=member_ids,
            title=title,
        )
        await append_message(session, thread, actor.id, body)
        await notify_thread_participants(session, thread, actor, body, mailer=mailer)

        result.delivered += len(member_ids)
        if created:
            result.threads += 1

    log.info(
        "broadcast.completed",
        developer_org_id=str(developer_org.id),
        partners=len(partnerships),
        delivered=result.delivered,
        threads=result.threads,
    )
    return result
