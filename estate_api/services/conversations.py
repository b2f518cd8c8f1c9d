"""
Read side of messaging: thread inboxes and message history with their
thread, sender and recipient summaries.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlmodel import select

from estate_api.core.errors import Forbidden, NotFound
from estate_api.models.message import Message
from estate_api.models.organization import Organization
from estate_api.models.property import Property
from estate_api.models.thread import MessageThread, ThreadParticipant
from estate_api.models.user import User
from estate_api.services.threads import get_thread, is_participant
from estate_shared.schemas.common import ThreadType
from estate_shared.schemas.messages import (
    BroadcastThreadResponse,
    DirectThreadResponse,
    GroupThreadResponse,
    MessageResponse,
    MessageWithContext,
    OrgSummary,
    PropertySummary,
    ThreadResponse,
    UserSummary,
)


async def _load_participants(
    session: AsyncSession,
    thread_ids: Sequence[uuid.UUID],
) -> dict[uuid.UUID, list[User]]:
    result = await session.execute(
        select(ThreadParticipant.thread_id, User)
        .join(User, User.id == ThreadParticipant.user_id)
        .where(ThreadParticipant.thread_id.in_(thread_ids))
        .order_by(ThreadParticipant.added_at, User.id)
    )
    participants: dict[uuid.UUID, list[User]] = defaultdict(list)
    for thread_id, user in result.all():
        participants[thread_id].append(user)
    return participants


async def _load_last_messages(
    session: AsyncSession,
    thread_ids: Sequence[uuid.UUID],
) -> dict[uuid.UUID, Message]:
    ranked = (
        select(
            Message,
            sa.func.row_number()
            .over(
                partition_by=Message.thread_id,
                order_by=(Message.created_at.desc(), Message.id.desc()),
            )
            .label("rn"),
        )
        .where(Message.thread_id.in_(thread_ids))
        .subquery()
    )
    latest = aliased(Message, ranked)
    result = await session.execute(select(latest).where(ranked.c.rn == 1))
    return {msg.thread_id: msg for msg in result.scalars().all()}


async def _load_by_ids(session: AsyncSession, model, ids: set) -> dict:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    result = await session.execute(select(model).where(model.id.in_(ids)))
    return {row.id: row for row in result.scalars().all()}


async def build_thread_summaries(
    session: AsyncSession,
    threads: Sequence[MessageThread],
    viewer_id: uuid.UUID,
) -> list[ThreadResponse]:
    """Summaries in the order given, as seen by ``viewer_id``."""
    if not threads:
        return []
    thread_ids = [t.id for t in threads]

    participants = await _load_participants(session, thread_ids)
    last_messages = await _load_last_messages(session, thread_ids)
    properties = await _load_by_ids(session, Property, {t.property_id for t in threads})
    orgs = await _load_by_ids(
        session,
        Organization,
        {t.developer_org_id for t in threads} | {t.brokerage_org_id for t in threads},
    )

    summaries: list[ThreadResponse] = []
    for thread in threads:
        members = participants.get(thread.id, [])
        other = next((u for u in members if u.id != viewer_id), None)
        last = last_messages.get(thread.id)
        common = dict(
            id=thread.id,
            title=thread.title,
            participants=[UserSummary.model_validate(u) for u in members],
            created_by=thread.created_by,
            last_message_at=thread.last_message_at,
            last_message=MessageResponse.model_validate(last) if last else None,
            other_user=UserSummary.model_validate(other) if other else None,
        )

        kind = ThreadType(thread.type)
        if kind is ThreadType.DIRECT:
            summaries.append(
                DirectThreadResponse(
                    **common,
                    property=PropertySummary.model_validate(properties[thread.property_id]),
                )
            )
        elif kind is ThreadType.GROUP:
            summaries.append(GroupThreadResponse(**common, org_id=thread.org_id))
        else:
            summaries.append(
                BroadcastThreadResponse(
                    **common,
                    developer_org=OrgSummary.model_validate(orgs[thread.developer_org_id]),
                    brokerage_org=OrgSummary.model_validate(orgs[thread.brokerage_org_id]),
                )
            )
    return summaries


async def list_threads(
    session: AsyncSession,
    viewer: User,
    *,
    page: int = 1,
    size: int = 20,
) -> list[ThreadResponse]:
    """The viewer's threads, most recent activity first."""
    result = await session.execute(
        select(MessageThread)
        .join(ThreadParticipant, ThreadParticipant.thread_id == MessageThread.id)
        .where(ThreadParticipant.user_id == viewer.id)
        .order_by(
            MessageThread.last_message_at.desc(),
            MessageThread.updated_at.desc(),
            MessageThread.id.desc(),
        )
        .offset((page - 1) * size)
        .limit(size)
    )
    return await build_thread_summaries(session, result.scalars().all(), viewer.id)


async def list_messages(
    session: AsyncSession,
    viewer: User,
    *,
    thread_id: Optional[uuid.UUID] = None,
    property_id: Optional[uuid.UUID] = None,
    page: int = 1,
    size: int = 20,
) -> list[MessageWithContext]:
    """Message history, oldest first.

    By thread the viewer must participate; by property only messages from
    threads the viewer participates in are returned.
    """
    if thread_id is not None:
        thread = await get_thread(session, thread_id)
        if thread is None:
            raise NotFound()
        if not await is_participant(session, thread.id, viewer.id):
            raise Forbidden()
        conditions = [Message.thread_id == thread.id]
    else:
        viewer_threads = (
            select(ThreadParticipant.thread_id)
            .join(MessageThread, MessageThread.id == ThreadParticipant.thread_id)
            .where(
                ThreadParticipant.user_id == viewer.id,
                MessageThread.property_id == property_id,
            )
        )
        conditions = [Message.property_id == property_id, Message.thread_id.in_(viewer_threads)]

    result = await session.execute(
        select(Message)
        .where(*conditions)
        .order_by(Message.created_at, Message.id)
        .offset((page - 1) * size)
        .limit(size)
    )
    messages = result.scalars().all()
    if not messages:
        return []

    threads = await _load_by_ids(session, MessageThread, {m.thread_id for m in messages})
    ordered_threads = list(threads.values())
    summaries = {
        s.id: s for s in await build_thread_summaries(session, ordered_threads, viewer.id)
    }
    users = await _load_by_ids(
        session,
        User,
        {m.sender_id for m in messages} | {m.recipient_id for m in messages},
    )

    out: list[MessageWithContext] = []
    for msg in messages:
        sender = users.get(msg.sender_id)
        recipient = users.get(msg.recipient_id) if msg.recipient_id else None
        out.append(
            MessageWithContext(
                **MessageResponse.model_validate(msg).model_dump(),
                thread=summaries[msg.thread_id],
                sender=UserSummary.model_validate(sender) if sender else None,
                recipient=UserSummary.model_validate(recipient) if recipient else None,
            )
        )
    return out
