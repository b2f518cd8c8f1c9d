"""
Identity resolution for the messaging core.

Supports:
- Access token in the ``x-access-token`` header (mobile / admin clients)
- ``Authorization: Bearer <jwt>`` header
- JWT session cookie (browser frontend)
- Redis-backed JWT revocation list (when Redis is configured)

Resolution fails open to *anonymous*: any missing, undecodable, expired or
revoked credential yields ``None``. Protected endpoints turn anonymous into a
401 through ``require_actor``; the resolver itself never raises.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, Request
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from estate_api.core.config import get_settings
from estate_api.core.database import get_session
from estate_api.core.errors import Unauthenticated
from estate_api.core.redis import get_redis
from estate_api.models.user import User

log = structlog.get_logger()
settings = get_settings()

REVOKED_KEY_PREFIX = "jwt:revoked:"


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> bool:
    """Add a JWT ID to the revocation list. Returns False when Redis is not configured."""
    client = await get_redis()
    if client is None:
        return False
    await client.setex(f"{REVOKED_KEY_PREFIX}{jti}", ttl_seconds, "1")
    return True


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    client = await get_redis()
    if client is None:
        return False
    return await client.exists(f"{REVOKED_KEY_PREFIX}{jti}") > 0


# ---------------------------------------------------------------------------
# Credential extraction
# ---------------------------------------------------------------------------

def extract_token(request: Request) -> Optional[str]:
    """Pull the raw credential from header or cookie, header first."""
    token = request.headers.get(settings.access_token_header)
    if token:
        return token.strip()

    authorization = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None

    return request.cookies.get(settings.auth_cookie_name)


async def resolve_actor(request: Request, session: AsyncSession) -> Optional[User]:
    """Return the authenticated user, or None for anonymous."""
    token = extract_token(request)
    if not token:
        return None

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        return None

    jti = payload.get("jti")
    if jti:
        try:
            if await is_jwt_revoked(jti):
                return None
        except RedisError as exc:
            log.warning("auth.revocation_check_failed", error=str(exc))
            return None

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except (TypeError, ValueError):
        return None

    return await session.get(User, user_id)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_actor(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """Resolved actor or None; for endpoints that allow anonymous access."""
    return await resolve_actor(request, session)


async def require_actor(
    actor: Optional[User] = Depends(get_actor),
) -> User:
    """Any authenticated user can access this endpoint."""
    if actor is None:
        raise Unauthenticated()
    return actor
