"""
Message ledger — append messages to threads and notify the other participants.

Entry modes:
- by ``thread_id``: sender must already participate; an optional recipient is
  folded into the participant set
- by ``property_id`` + ``recipient_id``: resolves the DIRECT thread for the
  pair, applying the first-contact gates only when no thread exists yet

Every check runs before the first write. The message commits before any
notification is written.
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from estate_api.core.errors import BadRequest, Forbidden, NotFound
from estate_api.models.base import utcnow
from estate_api.models.message import Message
from estate_api.models.property import Property
from estate_api.models.thread import MessageThread
from estate_api.models.user import User
from estate_api.services.email import EmailDispatcher
from estate_api.services.notifications import notify_user
from estate_api.services.threads import (
    ensure_participants,
    find_direct_thread,
    get_participant_ids,
    get_thread,
    is_participant,
    resolve_direct_thread,
)
from estate_shared.schemas.common import ListingStatus, NotificationType, ThreadType, UserType

log = structlog.get_logger()

PREVIEW_LENGTH = 120


def message_preview(body: str) -> str:
    return body[:PREVIEW_LENGTH]


def thread_link(thread: MessageThread) -> str:
    link = f"/messages?threadId={thread.id}"
    if thread.type == ThreadType.DIRECT.value and thread.property_id:
        link += f"&propertyId={thread.property_id}"
    return link


def check_first_contact(listing: Property, sender: User, recipient: User) -> None:
    """Gates for opening a new DIRECT conversation about a listing. Raises Forbidden."""
    contacts = listing.designated_contacts()
    sender_is_contact = sender.id in contacts

    if recipient.id not in contacts and not sender_is_contact:
        raise Forbidden()
    if sender.type == UserType.BROKER.value and recipient.type == UserType.OWNER.value:
        raise Forbidden()
    if listing.listing_status != ListingStatus.PUBLISHED.value and not sender_is_contact:
        raise Forbidden()


async def append_message(
    session: AsyncSession,
    thread: MessageThread,
    sender_id: uuid.UUID,
    body: str,
    *,
    property_id: Optional[uuid.UUID] = None,
    recipient_id: Optional[uuid.UUID] = None,
) -> Message:
    """Persist a message and move the thread's ``last_message_at`` forward, then commit."""
    now = utcnow()
    msg = Message(
        thread_id=thread.id,
        property_id=property_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        message=body,
        created_at=now,
    )
    session.add(msg)

    # Never moves backwards, even when appends commit out of order.
    await session.execute(
        sa.update(MessageThread)
        .where(MessageThread.id == thread.id)
        .values(
            last_message_at=sa.case(
                (
                    sa.or_(
                        MessageThread.last_message_at.is_(None),
                        MessageThread.last_message_at < now,
                    ),
                    now,
                ),
                else_=MessageThread.last_message_at,
            )
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    await session.refresh(thread)

    log.info(
        "message.created",
        message_id=str(msg.id),
        thread_id=str(thread.id),
        sender_id=str(sender_id),
    )
    return msg


async def notify_thread_participants(
    session: AsyncSession,
    thread: MessageThread,
    sender: User,
    body: str,
    *,
    mailer: Optional[EmailDispatcher] = None,
) -> int:
    """One MESSAGE notification per participant other than the sender. Returns how many."""
    recipient_ids = await get_participant_ids(session, thread.id)
    recipient_ids.discard(sender.id)
    if not recipient_ids:
        return 0

    result = await session.execute(
        select(User).where(User.id.in_(recipient_ids)).order_by(User.created_at, User.id)
    )
    recipients = result.scalars().all()

    text = f"New message from {sender.full_name}: {message_preview(body)}"
    link = thread_link(thread)
    for user in recipients:
        await notify_user(
            session,
            user,
            text,
            link=link,
            type=NotificationType.MESSAGE,
            mailer=mailer,
        )
    return len(recipients)


async def _resolve_by_thread(
    session: AsyncSession,
    sender: User,
    thread_id: uuid.UUID,
    recipient_id: Optional[uuid.UUID],
) -> tuple[MessageThread, Optional[User]]:
    thread = await get_thread(session, thread_id)
    if thread is None:
        raise NotFound()
    if not await is_participant(session, thread.id, sender.id):
        raise Forbidden()

    recipient = None
    if recipient_id is not None:
        recipient = await session.get(User, recipient_id)
        if recipient is None:
            raise NotFound()
    return thread, recipient


async def _resolve_by_property(
    session: AsyncSession,
    sender: User,
    property_id: Optional[uuid.UUID],
    recipient_id: Optional[uuid.UUID],
) -> tuple[Property, User, Optional[MessageThread]]:
    if property_id is None or recipient_id is None:
        raise BadRequest("propertyId and recipientId are required")

    listing = await session.get(Property, property_id)
    if listing is None:
        raise NotFound()
    if recipient_id == sender.id:
        raise BadRequest("Cannot message yourself")
    recipient = await session.get(User, recipient_id)
    if recipient is None:
        raise NotFound()

    existing = await find_direct_thread(session, listing.id, sender.id, recipient.id)
    if existing is None:
        check_first_contact(listing, sender, recipient)
    return listing, recipient, existing


async def create_message(
    session: AsyncSession,
    sender: User,
    *,
    message: Optional[str],
    thread_id: Optional[uuid.UUID] = None,
    property_id: Optional[uuid.UUID] = None,
    recipient_id: Optional[uuid.UUID] = None,
    mailer: Optional[EmailDispatcher] = None,
) -> Message:
    body = (message or "").strip()
    if not body:
        raise BadRequest("Message is required")

    if thread_id is not None:
        thread, recipient = await _resolve_by_thread(session, sender, thread_id, recipient_id)
        if recipient is not None:
            await ensure_participants(session, thread.id, {sender.id, recipient.id})
    else:
        listing, recipient, thread = await _resolve_by_property(session, sender, property_id, recipient_id)
        if thread is None:
            thread, _ = await resolve_direct_thread(session, listing, sender.id, recipient.id)

    msg = await append_message(
        session,
        thread,
        sender.id,
        body,
        property_id=thread.property_id,
        recipient_id=recipient.id if recipient is not None else None,
    )
    await notify_thread_participants(session, thread, sender, body, mailer=mailer)
    return msg
