"""
Shared fixtures: in-memory SQLite database, model factories, a recording
mailer and an ASGI client bound to the test session.
"""

from __future__ import annotations

import os
import uuid
from typing import Optional

# Configure before any estate_api import reads settings.
os.environ["ESTATE_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.pop("ESTATE_REDIS_URL", None)
os.environ.pop("ESTATE_EMAIL_API_URL", None)
os.environ.setdefault("ESTATE_LOG_FORMAT", "text")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import estate_api.models  # noqa: F401
from estate_api.core.auth import create_jwt
from estate_api.core.database import get_session
from estate_api.models.org_membership import OrgMembership
from estate_api.models.org_partnership import OrgPartnership
from estate_api.models.organization import Organization
from estate_api.models.property import Property
from estate_api.models.user import User
from estate_api.services.email import get_email_dispatcher
from estate_shared.schemas.common import (
    ListingStatus,
    OrganizationType,
    OrgMemberRole,
    OrgMemberStatus,
    OrgPartnershipStatus,
    UserType,
)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class Factory:
    """Creates committed rows with sensible defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(
        self,
        full_name: str = "Test User",
        type: UserType = UserType.USER,
        email: Optional[str] = None,
        primary_org: Optional[Organization] = None,
        enable_email_notifications: bool = True,
    ) -> User:
        return await self._save(
            User(
                full_name=full_name,
                type=type.value,
                email=email,
                primary_org_id=primary_org.id if primary_org else None,
                enable_email_notifications=enable_email_notifications,
            )
        )

    async def org(self, name: str = "Org", type: OrganizationType = OrganizationType.BROKERAGE) -> Organization:
        slug = f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}"
        return await self._save(Organization(name=name, slug=slug, type=type.value))

    async def membership(
        self,
        org: Organization,
        user: User,
        role: OrgMemberRole = OrgMemberRole.AGENT,
        status: OrgMemberStatus = OrgMemberStatus.ACTIVE,
    ) -> OrgMembership:
        return await self._save(
            OrgMembership(org_id=org.id, user_id=user.id, role=role.value, status=status.value)
        )

    async def members(self, org: Organization, count: int, prefix: str = "Agent") -> list[User]:
        users = []
        for i in range(count):
            user = await self.user(f"{prefix} {i + 1}", type=UserType.BROKER)
            await self.membership(org, user)
            users.append(user)
        return users

    async def partnership(
        self,
        broker_org: Organization,
        developer_org: Organization,
        status: OrgPartnershipStatus = OrgPartnershipStatus.APPROVED,
    ) -> OrgPartnership:
        return await self._save(
            OrgPartnership(
                broker_org_id=broker_org.id,
                developer_org_id=developer_org.id,
                status=status.value,
            )
        )

    async def listing(
        self,
        name: str = "Sea View Villa",
        status: ListingStatus = ListingStatus.PUBLISHED,
        owner: Optional[User] = None,
        broker: Optional[User] = None,
        developer: Optional[User] = None,
        agency: Optional[User] = None,
    ) -> Property:
        return await self._save(
            Property(
                name=name,
                listing_status=status.value,
                owner_id=owner.id if owner else None,
                broker_id=broker.id if broker else None,
                developer_id=developer.id if developer else None,
                agency_id=agency.id if agency else None,
            )
        )


@pytest.fixture
def factory(session):
    return Factory(session)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class RecordingMailer:
    """Captures e-mails instead of sending them; ``fail=True`` simulates an outage."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise RuntimeError("mail api unavailable")
        self.sent.append((to, subject, html_body))


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def failing_mailer():
    return RecordingMailer(fail=True)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_jwt(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session, mailer):
    from estate_api.main import app

    async def _session_override():
        yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_email_dispatcher] = lambda: mailer
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    return auth_headers
