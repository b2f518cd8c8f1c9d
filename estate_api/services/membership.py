"""
Organization membership oracle — read-only answers about who belongs where.

A missing organization, a missing membership or a ``None`` id answers
False / empty; nothing here raises for absent rows.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from estate_api.models.org_membership import OrgMembership
from estate_api.models.organization import Organization
from estate_api.models.user import User
from estate_shared.schemas.common import (
    MANAGEMENT_ROLES,
    OrganizationType,
    OrgMemberStatus,
    UserType,
)


async def get_active_membership(
    session: AsyncSession,
    org_id: Optional[uuid.UUID],
    user_id: Optional[uuid.UUID],
) -> Optional[OrgMembership]:
    if org_id is None or user_id is None:
        return None
    result = await session.execute(
        select(OrgMembership).where(
            OrgMembership.org_id == org_id,
            OrgMembership.user_id == user_id,
            OrgMembership.status == OrgMemberStatus.ACTIVE.value,
        )
    )
    return result.scalar_one_or_none()


async def is_active_member(
    session: AsyncSession,
    org_id: Optional[uuid.UUID],
    user_id: Optional[uuid.UUID],
) -> bool:
    return await get_active_membership(session, org_id, user_id) is not None


async def has_management_role(
    session: AsyncSession,
    org_id: Optional[uuid.UUID],
    user: Optional[User],
) -> bool:
    """Global admins, or active OWNER_ADMIN / ADMIN members of the org."""
    if user is None:
        return False
    if user.type == UserType.ADMIN.value:
        return True
    membership = await get_active_membership(session, org_id, user.id)
    if membership is None:
        return False
    return membership.role in {role.value for role in MANAGEMENT_ROLES}


async def list_active_member_user_ids(
    session: AsyncSession,
    org_id: Optional[uuid.UUID],
) -> set[uuid.UUID]:
    if org_id is None:
        return set()
    result = await session.execute(
        select(OrgMembership.user_id).where(
            OrgMembership.org_id == org_id,
            OrgMembership.status == OrgMemberStatus.ACTIVE.value,
        )
    )
    return set(result.scalars().all())


async def list_developer_orgs(
    session: AsyncSession,
    user_id: uuid.UUID,
) -> list[Organization]:
    """Developer organizations the user is an active member of, oldest membership first."""
    result = await session.execute(
        select(Organization)
        .join(OrgMembership, OrgMembership.org_id == Organization.id)
        .where(
            OrgMembership.user_id == user_id,
            OrgMembership.status == OrgMemberStatus.ACTIVE.value,
            Organization.type == OrganizationType.DEVELOPER.value,
        )
        .order_by(OrgMembership.created_at, OrgMembership.id)
    )
    return list(result.scalars().all())
