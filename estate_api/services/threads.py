"""
Thread resolver — finds or creates the canonical conversation for a context.

- DIRECT threads are anchored to (property, user pair)
- BROADCAST threads are anchored to (developer org, brokerage org)
- GROUP threads are always created fresh

DIRECT and BROADCAST inserts run inside a SAVEPOINT guarded by the unique
``dedup_key``; the loser of a concurrent create rolls back its savepoint and
continues with the winner's thread.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from estate_api.core.errors import BadRequest, Forbidden
from estate_api.models.base import utcnow
from estate_api.models.organization import Organization
from estate_api.models.property import Property
from estate_api.models.thread import MessageThread, ThreadParticipant
from estate_api.models.user import User
from estate_api.services.membership import is_active_member, list_active_member_user_ids
from estate_shared.schemas.common import ThreadType

log = structlog.get_logger()


def direct_thread_key(property_id: uuid.UUID, user_a: uuid.UUID, user_b: uuid.UUID) -> str:
    """Order-independent key: (A, B) and (B, A) map to the same thread."""
    lo, hi = sorted((str(user_a), str(user_b)))
    return f"direct:{property_id}:{lo}:{hi}"


def broadcast_thread_key(developer_org_id: uuid.UUID, brokerage_org_id: uuid.UUID) -> str:
    return f"broadcast:{developer_org_id}:{brokerage_org_id}"


# ---------------------------------------------------------------------------
# Participant set
# ---------------------------------------------------------------------------

async def get_participant_ids(session: AsyncSession, thread_id: uuid.UUID) -> set[uuid.UUID]:
    result = await session.execute(
        select(ThreadParticipant.user_id).where(ThreadParticipant.thread_id == thread_id)
    )
    return set(result.scalars().all())


async def is_participant(session: AsyncSession, thread_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(ThreadParticipant.user_id).where(
            ThreadParticipant.thread_id == thread_id,
            ThreadParticipant.user_id == user_id,
        )
    )
    return result.scalar_one_or_none() is not None


def _participant_rows(thread_id: uuid.UUID, user_ids: Iterable[uuid.UUID]) -> list[dict]:
    now = utcnow()
    return [{"thread_id": thread_id, "user_id": uid, "added_at": now} for uid in user_ids]


async def _add_participant(session: AsyncSession, thread_id: uuid.UUID, user_id: uuid.UUID) -> None:
    try:
        async with session.begin_nested():
            await session.execute(sa.insert(ThreadParticipant), _participant_rows(thread_id, [user_id]))
    except IntegrityError:
        # Fine if a concurrent writer got there first; anything else is a real failure.
        if not await is_participant(session, thread_id, user_id):
            raise


async def ensure_participants(
    session: AsyncSession,
    thread_id: uuid.UUID,
    user_ids: Iterable[uuid.UUID],
) -> set[uuid.UUID]:
    """Union ``user_ids`` into the thread's participant set and return the result.

    Participants are never removed here.
    """
    current = await get_participant_ids(session, thread_id)
    missing = set(user_ids) - current
    if not missing:
        return current

    try:
        async with session.begin_nested():
            await session.execute(sa.insert(ThreadParticipant), _participant_rows(thread_id, missing))
    except IntegrityError:
        for uid in missing:
            await _add_participant(session, thread_id, uid)

    log.info("thread.participants_added", thread_id=str(thread_id), added=len(missing))
    return current | missing


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_thread(session: AsyncSession, thread_id: uuid.UUID) -> Optional[MessageThread]:
    return await session.get(MessageThread, thread_id)


async def _get_by_dedup_key(session: AsyncSession, key: str) -> Optional[MessageThread]:
    result = await session.execute(select(MessageThread).where(MessageThread.dedup_key == key))
    return result.scalar_one_or_none()


def _has_participant(user_id: uuid.UUID):
    return (
        select(ThreadParticipant.thread_id)
        .where(
            ThreadParticipant.thread_id == MessageThread.id,
            ThreadParticipant.user_id == user_id,
        )
        .exists()
    )


async def find_direct_thread(
    session: AsyncSession,
    property_id: uuid.UUID,
    user_a: uuid.UUID,
    user_b: uuid.UUID,
) -> Optional[MessageThread]:
    """DIRECT thread on the property whose participants include both users."""
    result = await session.execute(
        select(MessageThread)
        .where(
            MessageThread.type == ThreadType.DIRECT.value,
            MessageThread.property_id == property_id,
            _has_participant(user_a),
            _has_participant(user_b),
        )
        .order_by(MessageThread.created_at, MessageThread.id)
        .limit(1)
    )
    return result.scalars().first()


async def find_broadcast_thread(
    session: AsyncSession,
    developer_org_id: uuid.UUID,
    brokerage_org_id: uuid.UUID,
) -> Optional[MessageThread]:
    result = await session.execute(
        select(MessageThread).where(
            MessageThread.type == ThreadType.BROADCAST.value,
            MessageThread.developer_org_id == developer_org_id,
            MessageThread.brokerage_org_id == brokerage_org_id,
        )
    )
    return result.scalars().first()


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

async def _insert_unique(
    session: AsyncSession,
    thread: MessageThread,
    participant_ids: set[uuid.UUID],
) -> tuple[MessageThread, bool]:
    """Insert a deduplicated thread; returns (thread, created)."""
    try:
        async with session.begin_nested():
            session.add(thread)
            await session.flush()
            session.add_all(ThreadParticipant(thread_id=thread.id, user_id=uid) for uid in participant_ids)
            await session.flush()
    except IntegrityError:
        winner = await _get_by_dedup_key(session, thread.dedup_key)
        if winner is None:
            raise
        log.info("thread.create_race_lost", thread_id=str(winner.id), dedup_key=thread.dedup_key)
        return winner, False

    log.info(
        "thread.created",
        thread_id=str(thread.id),
        type=thread.type,
        participants=len(participant_ids),
    )
    return thread, True


async def resolve_direct_thread(
    session: AsyncSession,
    listing: Property,
    initiator_id: uuid.UUID,
    other_id: uuid.UUID,
) -> tuple[MessageThread, bool]:
    """Find or create the DIRECT thread for (listing, initiator, other).

    Permission gates are the caller's job; see ``services.messages``.
    """
    existing = await find_direct_thread(session, listing.id, initiator_id, other_id)
    if existing is not None:
        return existing, False

    thread = MessageThread(
        type=ThreadType.DIRECT.value,
        title=listing.name,
        property_id=listing.id,
        dedup_key=direct_thread_key(listing.id, initiator_id, other_id),
        created_by=initiator_id,
        last_message_at=utcnow(),
    )
    thread, created = await _insert_unique(session, thread, {initiator_id, other_id})
    if not created:
        await ensure_participants(session, thread.id, {initiator_id, other_id})
    return thread, created


async def resolve_broadcast_thread(
    session: AsyncSession,
    actor: User,
    developer_org: Organization,
    brokerage_org: Organization,
    *,
    member_ids: Optional[set[uuid.UUID]] = None,
    title: Optional[str] = None,
) -> tuple[MessageThread, bool]:
    """Find or create the BROADCAST thread for the org pair.

    An existing thread is widened to the actor plus the brokerage's current
    active members, since membership may have changed since the last broadcast.
    """
    if member_ids is None:
        member_ids = await list_active_member_user_ids(session, brokerage_org.id)
    participant_ids = {actor.id} | set(member_ids)

    existing = await find_broadcast_thread(session, developer_org.id, brokerage_org.id)
    if existing is not None:
        await ensure_participants(session, existing.id, participant_ids)
        return existing, False

    thread = MessageThread(
        type=ThreadType.BROADCAST.value,
        title=(title or "").strip() or f"{developer_org.name} -> {brokerage_org.name}",
        developer_org_id=developer_org.id,
        brokerage_org_id=brokerage_org.id,
        dedup_key=broadcast_thread_key(developer_org.id, brokerage_org.id),
        created_by=actor.id,
        last_message_at=utcnow(),
    )
    thread, created = await _insert_unique(session, thread, participant_ids)
    if not created:
        await ensure_participants(session, thread.id, participant_ids)
    return thread, created


def _parse_ids(raw_ids: Iterable[object]) -> set[uuid.UUID]:
    parsed: set[uuid.UUID] = set()
    for raw in raw_ids:
        try:
            parsed.add(raw if isinstance(raw, uuid.UUID) else uuid.UUID(str(raw)))
        except ValueError:
            continue
    return parsed


async def create_group_thread(
    session: AsyncSession,
    actor: User,
    title: Optional[str],
    participant_ids: Iterable[object],
    org_id: Optional[uuid.UUID] = None,
) -> tuple[MessageThread, set[uuid.UUID]]:
    """Create a GROUP thread. Returns (thread, participant ids).

    Unparsable ids and ids of unknown users are dropped. With ``org_id`` the
    actor and every participant must be active members of that organization.
    """
    trimmed_title = (title or "").strip()
    if not trimmed_title:
        raise BadRequest("Thread title is required")

    requested = _parse_ids(participant_ids)
    requested.discard(actor.id)
    known: set[uuid.UUID] = set()
    if requested:
        result = await session.execute(select(User.id).where(User.id.in_(requested)))
        known = set(result.scalars().all())
    if not known:
        raise BadRequest("At least one participant is required")

    members = known | {actor.id}

    if org_id is not None:
        if not await is_active_member(session, org_id, actor.id):
            raise Forbidden()
        org_member_ids = await list_active_member_user_ids(session, org_id)
        if not members <= org_member_ids:
            raise Forbidden()

    thread = MessageThread(
        type=ThreadType.GROUP.value,
        title=trimmed_title,
        org_id=org_id,
        created_by=actor.id,
        last_message_at=utcnow(),
    )
    session.add(thread)
    await session.flush()
    session.add_all(ThreadParticipant(thread_id=thread.id, user_id=uid) for uid in members)
    await session.commit()

    log.info(
        "thread.created",
        thread_id=str(thread.id),
        type=thread.type,
        participants=len(members),
        org_id=str(org_id) if org_id else None,
    )
    return thread, members
