"""
Tests for identity resolution.

Covers:
- JWT creation and decoding
- Credential extraction order (access-token header, Bearer, cookie)
- Anonymous on missing / bad / expired / revoked credentials
- Redis revocation list (mocked)
- require_actor and logout over HTTP
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import jwt
import pytest
from redis.exceptions import RedisError
from starlette.requests import Request

from estate_api.core.auth import (
    REVOKED_KEY_PREFIX,
    create_jwt,
    decode_jwt,
    extract_token,
    is_jwt_revoked,
    resolve_actor,
    revoke_jwt,
)
from estate_api.core.config import get_settings

settings = get_settings()


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        user_id = uuid.uuid4()
        token, jti = create_jwt(user_id)
        payload = decode_jwt(token)
        assert payload["sub"] == str(user_id)
        assert payload["jti"] == jti

    def test_expired_token_rejected(self):
        token, _ = create_jwt(uuid.uuid4(), expires_delta=timedelta(seconds=-1))
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_tampered_token_rejected(self):
        token, _ = create_jwt(uuid.uuid4())
        with pytest.raises(jwt.PyJWTError):
            decode_jwt(token[:-4] + "AAAA")


# ---------------------------------------------------------------------------
# Unit Tests: credential extraction
# ---------------------------------------------------------------------------

class TestExtractToken:
    def test_access_token_header_wins(self):
        request = _request({
            settings.access_token_header: "header-token",
            "Authorization": "Bearer bearer-token",
        })
        assert extract_token(request) == "header-token"

    def test_bearer(self):
        assert extract_token(_request({"Authorization": "Bearer abc"})) == "abc"

    def test_cookie(self):
        request = _request({"Cookie": f"{settings.auth_cookie_name}=cookie-token"})
        assert extract_token(request) == "cookie-token"

    def test_nothing(self):
        assert extract_token(_request()) is None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resolves_user(session, factory):
    user = await factory.user("Alice")
    token, _ = create_jwt(user.id)
    actor = await resolve_actor(_request({"Authorization": f"Bearer {token}"}), session)
    assert actor is not None
    assert actor.id == user.id


@pytest.mark.asyncio
async def test_anonymous_without_credentials(session):
    assert await resolve_actor(_request(), session) is None


@pytest.mark.asyncio
async def test_anonymous_on_garbage_token(session):
    assert await resolve_actor(_request({"Authorization": "Bearer not-a-jwt"}), session) is None


@pytest.mark.asyncio
async def test_anonymous_on_expired_token(session, factory):
    user = await factory.user()
    token, _ = create_jwt(user.id, expires_delta=timedelta(seconds=-5))
    assert await resolve_actor(_request({"Authorization": f"Bearer {token}"}), session) is None


@pytest.mark.asyncio
async def test_anonymous_for_unknown_user(session):
    token, _ = create_jwt(uuid.uuid4())
    assert await resolve_actor(_request({"Authorization": f"Bearer {token}"}), session) is None


@pytest.mark.asyncio
async def test_anonymous_when_revoked(session, factory):
    user = await factory.user()
    token, _ = create_jwt(user.id)
    fake_redis = AsyncMock()
    fake_redis.exists.return_value = 1
    with patch("estate_api.core.auth.get_redis", AsyncMock(return_value=fake_redis)):
        actor = await resolve_actor(_request({"Authorization": f"Bearer {token}"}), session)
    assert actor is None


@pytest.mark.asyncio
async def test_anonymous_when_revocation_check_fails(session, factory):
    user = await factory.user()
    token, _ = create_jwt(user.id)
    fake_redis = AsyncMock()
    fake_redis.exists.side_effect = RedisError("connection refused")
    with patch("estate_api.core.auth.get_redis", AsyncMock(return_value=fake_redis)):
        actor = await resolve_actor(_request({"Authorization": f"Bearer {token}"}), session)
    assert actor is None


# ---------------------------------------------------------------------------
# Revocation list
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_revocation_disabled_without_redis():
    assert await revoke_jwt("some-jti") is False
    assert await is_jwt_revoked("some-jti") is False


@pytest.mark.asyncio
async def test_revoke_writes_key_with_ttl():
    fake_redis = AsyncMock()
    with patch("estate_api.core.auth.get_redis", AsyncMock(return_value=fake_redis)):
        assert await revoke_jwt("abc", ttl_seconds=120) is True
    fake_redis.setex.assert_awaited_once_with(f"{REVOKED_KEY_PREFIX}abc", 120, "1")


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_protected_endpoint_requires_auth(client):
    response = await client.get("/api/v1/message-threads")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie(client, factory, auth):
    user = await factory.user()
    response = await client.post("/auth/logout", headers=auth(user))
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert settings.auth_cookie_name in response.headers.get("set-cookie", "")
