"""
Messaging endpoints.

POST /api/v1/messages                          — Send a message (by thread or by property + recipient)
GET  /api/v1/messages/property/{property_id}   — Messages about a property, oldest first
GET  /api/v1/messages/thread/{thread_id}       — Messages in a thread, oldest first
POST /api/v1/message-threads                   — Create a group thread
GET  /api/v1/message-threads                   — The caller's threads, newest activity first
POST /api/v1/message-broadcasts                — Developer broadcast to partner brokerages
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.auth import require_actor
from estate_api.core.database import get_session
from estate_api.core.pagination import page_params
from estate_api.models.user import User
from estate_api.services import broadcast as broadcast_service
from estate_api.services import conversations
from estate_api.services import messages as message_service
from estate_api.services.email import EmailDispatcher, get_request_mailer
from estate_api.services.threads import create_group_thread
from estate_shared.schemas.common import Pagination
from estate_shared.schemas.messages import (
    BroadcastRequest,
    BroadcastResult,
    CreateMessageRequest,
    CreateThreadRequest,
    MessageListResponse,
    MessageResponse,
    ThreadListResponse,
    ThreadResponse,
)

router = APIRouter()


@router.post("/messages", response_model=MessageResponse)
async def create_message(
    body: CreateMessageRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
    mailer: EmailDispatcher = Depends(get_request_mailer),
):
    msg = await message_service.create_message(
        session,
        actor,
        message=body.message,
        thread_id=body.thread_id,
        property_id=body.property_id,
        recipient_id=body.recipient_id,
        mailer=mailer,
    )
    return MessageResponse.model_validate(msg)


@router.get("/messages/property/{property_id}", response_model=MessageListResponse)
async def list_property_messages(
    property_id: uuid.UUID,
    pagination: Pagination = Depends(page_params),
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    items = await conversations.list_messages(
        session, actor, property_id=property_id, page=pagination.page, size=pagination.size
    )
    return MessageListResponse(data=items, pagination=pagination)


@router.get("/messages/thread/{thread_id}", response_model=MessageListResponse)
async def list_thread_messages(
    thread_id: uuid.UUID,
    pagination: Pagination = Depends(page_params),
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    items = await conversations.list_messages(
        session, actor, thread_id=thread_id, page=pagination.page, size=pagination.size
    )
    return MessageListResponse(data=items, pagination=pagination)


@router.post("/message-threads", response_model=ThreadResponse)
async def create_thread(
    body: CreateThreadRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    """Create a GROUP thread; the caller is always a participant."""
    thread, _ = await create_group_thread(session, actor, body.title, body.participants, body.org_id)
    [summary] = await conversations.build_thread_summaries(session, [thread], actor.id)
    return summary


@router.get("/message-threads", response_model=ThreadListResponse)
async def list_threads(
    pagination: Pagination = Depends(page_params),
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
):
    items = await conversations.list_threads(session, actor, page=pagination.page, size=pagination.size)
    return ThreadListResponse(data=items, pagination=pagination)


@router.post("/message-broadcasts", response_model=BroadcastResult)
async def create_broadcast(
    body: BroadcastRequest,
    actor: User = Depends(require_actor),
    session: AsyncSession = Depends(get_session),
    mailer: EmailDispatcher = Depends(get_request_mailer),
):
    """Send one message to every active member of each approved partner brokerage."""
    return await broadcast_service.broadcast(
        session,
        actor,
        message=body.message,
        developer_org_id=body.developer_org_id,
        title=body.title,
        mailer=mailer,
    )
