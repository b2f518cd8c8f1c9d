"""
Notification ledger — per-user notifications plus the unread counter.

The counter (``count`` for GENERAL, ``message_count`` for MESSAGE) always
equals the number of unread rows of each type. Every adjustment is a single
SQL ``UPDATE`` computed by the database and clamped at zero; read-state flips
only touch rows in the opposite state, so repeating a mark is a no-op.

Rows written before notification types existed have ``type IS NULL`` and are
counted as GENERAL.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

import sqlalchemy as sa
import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from estate_api.models.notification import Notification, NotificationCounter
from estate_api.models.user import User
from estate_api.services.email import EmailDispatcher, get_email_dispatcher, render_notification_email
from estate_shared.schemas.common import NotificationType

log = structlog.get_logger()


@dataclass(frozen=True)
class CounterAdjustment:
    """Outcome of a read-state change: rows affected per type and whether a counter row existed."""

    general: int = 0
    message: int = 0
    counter_found: bool = False

    @property
    def total(self) -> int:
        return self.general + self.message


def _split(types: Iterable[Optional[str]]) -> tuple[int, int]:
    """(general, message) tally; NULL counts as GENERAL."""
    general = message = 0
    for value in types:
        if value == NotificationType.MESSAGE.value:
            message += 1
        else:
            general += 1
    return general, message


def _type_clause(types: Iterable[NotificationType]):
    clauses = []
    for t in set(types):
        if t == NotificationType.GENERAL:
            clauses.append(Notification.type == NotificationType.GENERAL.value)
            clauses.append(Notification.type.is_(None))
        else:
            clauses.append(Notification.type == t.value)
    return sa.or_(*clauses)


# ---------------------------------------------------------------------------
# Counter
# ---------------------------------------------------------------------------

async def _get_counter_row(session: AsyncSession, user_id: uuid.UUID) -> Optional[NotificationCounter]:
    result = await session.execute(
        select(NotificationCounter)
        .where(NotificationCounter.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _unread_tally(session: AsyncSession, user_id: uuid.UUID) -> tuple[int, int]:
    """(general, message) unread rows for the user; NULL type counts as GENERAL."""
    result = await session.execute(
        select(Notification.type, sa.func.count())
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .group_by(Notification.type)
    )
    general = message = 0
    for type_, n in result.all():
        if type_ == NotificationType.MESSAGE.value:
            message += n
        else:
            general += n
    return general, message


async def _ensure_counter(session: AsyncSession, user_id: uuid.UUID) -> NotificationCounter:
    """Load the counter, creating it from the user's current unread rows when absent."""
    counter = await _get_counter_row(session, user_id)
    if counter is not None:
        return counter

    try:
        async with session.begin_nested():
            general, message = await _unread_tally(session, user_id)
            counter = NotificationCounter(user_id=user_id, count=general, message_count=message)
            session.add(counter)
            await session.flush()
    except IntegrityError:
        counter = await _get_counter_row(session, user_id)
        if counter is None:
            raise
    return counter


def _clamped(column, delta: int):
    return sa.case((column + delta < 0, 0), else_=column + delta)


async def _adjust_counter(
    session: AsyncSession,
    user_id: uuid.UUID,
    general_delta: int = 0,
    message_delta: int = 0,
) -> bool:
    """Apply deltas atomically in SQL. Returns whether the counter row exists."""
    values = {}
    if general_delta:
        values["count"] = _clamped(NotificationCounter.count, general_delta)
    if message_delta:
        values["message_count"] = _clamped(NotificationCounter.message_count, message_delta)

    if not values:
        return await _get_counter_row(session, user_id) is not None

    result = await session.execute(
        sa.update(NotificationCounter)
        .where(NotificationCounter.user_id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def reconcile_counter(session: AsyncSession, user_id: uuid.UUID) -> NotificationCounter:
    """Recompute the counter from the notification rows, creating it if absent."""
    general, message = await _unread_tally(session, user_id)
    await _ensure_counter(session, user_id)
    await session.execute(
        sa.update(NotificationCounter)
        .where(NotificationCounter.user_id == user_id)
        .values(count=general, message_count=message)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    counter = await _get_counter_row(session, user_id)
    log.info("notification.counter_reconciled", user_id=str(user_id), count=general, message_count=message)
    return counter


async def get_counter(session: AsyncSession, user_id: uuid.UUID) -> NotificationCounter:
    counter = await _get_counter_row(session, user_id)
    if counter is None:
        counter = await reconcile_counter(session, user_id)
    return counter


# ---------------------------------------------------------------------------
# Notify
# ---------------------------------------------------------------------------

async def notify_user(
    session: AsyncSession,
    user: User,
    message: str,
    *,
    link: Optional[str] = None,
    type: NotificationType = NotificationType.GENERAL,
    booking_id: Optional[uuid.UUID] = None,
    mailer: Optional[EmailDispatcher] = None,
) -> Notification:
    """Record a notification, bump the matching counter and optionally e-mail the user.

    The notification and counter commit together before the e-mail is
    attempted; a failed send is logged and leaves both in place.
    """
    # Counter first: a freshly created counter is seeded from the rows already stored.
    await _ensure_counter(session, user.id)
    notification = Notification(
        user_id=user.id,
        message=message,
        link=link,
        type=type.value,
        booking_id=booking_id,
    )
    session.add(notification)
    if type == NotificationType.MESSAGE:
        await _adjust_counter(session, user.id, message_delta=1)
    else:
        await _adjust_counter(session, user.id, general_delta=1)
    await session.commit()

    log.info(
        "notification.created",
        notification_id=str(notification.id),
        user_id=str(user.id),
        type=type.value,
    )

    if user.enable_email_notifications and user.email:
        mailer = mailer or get_email_dispatcher()
        subject, body = render_notification_email(user.full_name, message, link)
        try:
            await mailer.send(user.email, subject, body)
        except Exception as exc:
            log.warning(
                "notification.email_failed",
                notification_id=str(notification.id),
                user_id=str(user.id),
                error=str(exc),
            )

    return notification


# ---------------------------------------------------------------------------
# Read state
# ---------------------------------------------------------------------------

async def _flip(
    session: AsyncSession,
    user_id: uuid.UUID,
    *conditions,
    read: bool,
) -> CounterAdjustment:
    result = await session.execute(
        sa.update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(not read), *conditions)
        .values(is_read=read)
        .returning(Notification.type)
        .execution_options(synchronize_session=False)
    )
    general, message = _split(result.scalars().all())

    sign = -1 if read else 1
    found = await _adjust_counter(session, user_id, sign * general, sign * message)
    await session.commit()

    log.info(
        "notification.marked",
        user_id=str(user_id),
        read=read,
        general=general,
        message=message,
    )
    return CounterAdjustment(general=general, message=message, counter_found=found)


async def mark_read(session: AsyncSession, user_id: uuid.UUID, ids: Iterable[uuid.UUID]) -> CounterAdjustment:
    return await _flip(session, user_id, Notification.id.in_(list(ids)), read=True)


async def mark_unread(session: AsyncSession, user_id: uuid.UUID, ids: Iterable[uuid.UUID]) -> CounterAdjustment:
    return await _flip(session, user_id, Notification.id.in_(list(ids)), read=False)


async def mark_read_by_type(
    session: AsyncSession,
    user_id: uuid.UUID,
    types: Iterable[NotificationType],
) -> CounterAdjustment:
    """Mark every unread notification of the given types as read."""
    return await _flip(session, user_id, _type_clause(types), read=True)


async def delete_notifications(
    session: AsyncSession,
    user_id: uuid.UUID,
    ids: Iterable[uuid.UUID],
) -> CounterAdjustment:
    """Delete the user's notifications; unread ones leave the counter."""
    result = await session.execute(
        sa.delete(Notification)
        .where(Notification.user_id == user_id, Notification.id.in_(list(ids)))
        .returning(Notification.type, Notification.is_read)
        .execution_options(synchronize_session=False)
    )
    rows = result.all()
    general, message = _split(type_ for type_, is_read in rows if not is_read)

    found = await _adjust_counter(session, user_id, -general, -message)
    await session.commit()

    log.info("notification.deleted", user_id=str(user_id), deleted=len(rows), unread=general + message)
    return CounterAdjustment(general=general, message=message, counter_found=found)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

async def list_notifications(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    page: int = 1,
    size: int = 20,
    types: Optional[Iterable[NotificationType]] = None,
) -> tuple[list[Notification], int]:
    """Page of the user's notifications, newest first, with the filtered total."""
    conditions = [Notification.user_id == user_id]
    if types:
        conditions.append(_type_clause(types))

    total = (
        await session.execute(select(sa.func.count()).select_from(Notification).where(*conditions))
    ).scalar_one()

    result = await session.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * size)
        .limit(size)
    )
    return list(result.scalars().all()), total
