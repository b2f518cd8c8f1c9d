"""
API v1 Router
"""

from fastapi import APIRouter
from . import messages, notifications, partnerships

router = APIRouter()

router.include_router(messages.router, tags=["Messages"])
router.include_router(notifications.router, tags=["Notifications"])
router.include_router(partnerships.router, tags=["Partnerships"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/messages",
            "/message-threads",
            "/message-broadcasts",
            "/notifications/{userId}",
            "/notification-counter/{userId}",
            "/partnerships",
            "/orgs/{orgId}/partnerships",
        ],
    }
