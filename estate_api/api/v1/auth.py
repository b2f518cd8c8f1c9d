"""
Session endpoints.

Sign-in belongs to the account service; this server only ends sessions by
revoking the token's ``jti`` until the token would have expired anyway.
"""

from __future__ import annotations

from datetime import datetime, timezone

import jwt
import structlog
from fastapi import APIRouter, Request, Response
from redis.exceptions import RedisError

from estate_api.core.auth import decode_jwt, extract_token, revoke_jwt
from estate_api.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = extract_token(request)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = None  # Already invalid, just clear the cookie

        if payload and payload.get("jti"):
            remaining = int(payload["exp"] - datetime.now(timezone.utc).timestamp())
            try:
                revoked = await revoke_jwt(payload["jti"], ttl_seconds=max(remaining, 1))
            except RedisError as exc:
                log.warning("auth.revoke_failed", error=str(exc))
            else:
                log.info("auth.logout", sub=payload.get("sub"), revoked=revoked)

    response.delete_cookie(settings.auth_cookie_name, path="/")
    return {"status": "ok"}
