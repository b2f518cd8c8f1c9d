"""
Notification schemas shared between the API server and its clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import NotificationType, Pagination


def parse_type_filter(raw: str) -> set[NotificationType]:
    """Parse a comma-separated type filter such as ``"GENERAL,MESSAGE"``.

    Tokens are case-insensitive; blanks are ignored. Raises ValueError on an
    unknown token or when nothing remains.
    """
    tokens = [t.strip().upper() for t in raw.split(",") if t.strip()]
    if not tokens:
        raise ValueError("Empty notification type filter")
    try:
        return {NotificationType(t) for t in tokens}
    except ValueError:
        raise ValueError(f"Unknown notification type in {raw!r}") from None


class NotificationIdsRequest(BaseModel):
    ids: list[uuid.UUID] = Field(..., min_length=1, max_length=500)


class NotificationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    message: str
    link: Optional[str] = None
    booking_id: Optional[uuid.UUID] = None
    # Rows written before types existed have no type; they read as GENERAL
    type: NotificationType = NotificationType.GENERAL
    is_read: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("type", mode="before")
    @classmethod
    def _legacy_type(cls, value):
        return value or NotificationType.GENERAL


class NotificationCounterResponse(BaseModel):
    user_id: uuid.UUID
    count: int = Field(0, ge=0)
    message_count: int = Field(0, ge=0)

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    pagination: Pagination
