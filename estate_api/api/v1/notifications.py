"""
Notification endpoints. A user may only read or change their own
notifications; global admins may act on anyone's.

GET  /api/v1/notification-counter/{user_id}                         — Unread counters
GET  /api/v1/notifications/{user_id}                                 — Page of notifications
POST /api/v1/notifications/{user_id}/mark-read                       — Mark ids read
POST /api/v1/notifications/{user_id}/mark-unread                     — Mark ids unread
POST /api/v1/notifications/{user_id}/mark-read-by-type/{types}       — Mark all unread of types read
POST /api/v1/notifications/{user_id}/delete                          — Delete ids

Mutations answer 200, or 204 when the user has no counter row (nothing to
adjust).
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.auth import require_actor
from estate_api.core.database import get_session
from estate_api.core.errors import BadRequest, Forbidden
from estate_api.core.pagination import page_params
from estate_api.models.user import User
from estate_api.services import notifications as notification_service
from estate_shared.schemas.common import Pagination, UserType
from estate_shared.schemas.notifications import (
    NotificationCounterResponse,
    NotificationIdsRequest,
    NotificationListResponse,
    NotificationResponse,
    parse_type_filter,
)

router = APIRouter()


def _ensure_self_or_admin(actor: User, user_id: uuid.UUID) -> None:
    if actor.id != user_id and actor.type != UserType.ADMIN.value:
        raise Forbidden()


def _parse_types(raw: str):
    try:
        return parse_type_filter(raw)
    except ValueError as exc:
        raise BadRequest(str(exc)) from None


def _adjustment_response(adjustment: notification_service.CounterAdjustment) -> Response:
    if not adjustment.counter_found:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/notification-counter/{user_id}", response_model=NotificationCounterResponse)
async def get_counter(
    user_id: uuid.UUID,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    _ensure_self_or_admin(actor, user_id)
    counter = await notification_service.get_counter(session, user_id)
    return NotificationCounterResponse.model_validate(counter)


@router.get("/notifications/{user_id}", response_model=NotificationListResponse)
async def list_notifications(
    user_id: uuid.UUID,
    type: Optional[str] = Query(None, description="Comma-separated GENERAL,MESSAGE"),
    pagination: Pagination = Depends(page_params),
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    _ensure_self_or_admin(actor, user_id)
    types = _parse_types(type) if type else None
    rows, total = await notification_service.list_notifications(
        session, user_id, page=pagination.page, size=pagination.size, types=types
    )
    return NotificationListResponse(
        data=[NotificationResponse.model_validate(row) for row in rows],
        pagination=Pagination(page=pagination.page, size=pagination.size, total=total),
    )


@router.post("/notifications/{user_id}/mark-read")
async def mark_read(
    user_id: uuid.UUID,
    body: NotificationIdsRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    _ensure_self_or_admin(actor, user_id)
    adjustment = await notification_service.mark_read(session, user_id, body.ids)
    return _adjustment_response(adjustment)


@router.post("/notifications/{user_id}/mark-unread")
async def mark_unread(
    user_id: uuid.UUID,
    body: NotificationIdsRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    _ensure_self_or_admin(actor, user_id)
    adjustment = await notification_service.mark_unread(session, user_id, body.ids)
    return _adjustment_response(adjustment)


@router.post("/notifications/{user_id}/mark-read-by-type/{types}")
async def mark_read_by_type(
    user_id: uuid.UUID,
    types: str,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    _ensure_self_or_admin(actor, user_id)
    parsed = _parse_types(types)
    adjustment = await notification_service.mark_read_by_type(session, user_id, parsed)
    if adjustment.total == 0:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _adjustment_response(adjustment)


@router.post("/notifications/{user_id}/delete")
async def delete_notifications(
    user_id: uuid.UUID,
    body: NotificationIdsRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    _ensure_self_or_admin(actor, user_id)
    adjustment = await notification_service.delete_notifications(session, user_id, body.ids)
    return _adjustment_response(adjustment)
