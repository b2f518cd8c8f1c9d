"""
HTTP tests for notification and partnership endpoints.
"""

from __future__ import annotations

import uuid

import pytest

from estate_api.models.notification import Notification
from estate_api.services.notifications import notify_user
from estate_shared.schemas.common import NotificationType, OrganizationType, OrgMemberRole, UserType


@pytest.mark.asyncio
async def test_counter_and_listing(client, session, factory, auth, mailer):
    user = await factory.user()
    await notify_user(session, user, "general", mailer=mailer)
    await notify_user(session, user, "message", type=NotificationType.MESSAGE, mailer=mailer)

    response = await client.get(f"/api/v1/notification-counter/{user.id}", headers=auth(user))
    assert response.status_code == 200
    assert response.json() == {"user_id": str(user.id), "count": 1, "message_count": 1}

    response = await client.get(
        f"/api/v1/notifications/{user.id}", params={"type": "MESSAGE"}, headers=auth(user)
    )
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert [n["message"] for n in body["data"]] == ["message"]


@pytest.mark.asyncio
async def test_other_users_notifications_forbidden(client, factory, auth):
    alice = await factory.user("Alice")
    bob = await factory.user("Bob")
    response = await client.get(f"/api/v1/notifications/{bob.id}", headers=auth(alice))
    assert response.status_code == 403

    admin = await factory.user("Admin", type=UserType.ADMIN)
    response = await client.get(f"/api/v1/notification-counter/{bob.id}", headers=auth(admin))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_mark_read_and_unread(client, session, factory, auth, mailer):
    user = await factory.user()
    note = await notify_user(session, user, "hello", mailer=mailer)

    response = await client.post(
        f"/api/v1/notifications/{user.id}/mark-read", json={"ids": [str(note.id)]}, headers=auth(user)
    )
    assert response.status_code == 200
    response = await client.get(f"/api/v1/notification-counter/{user.id}", headers=auth(user))
    assert response.json()["count"] == 0

    response = await client.post(
        f"/api/v1/notifications/{user.id}/mark-unread", json={"ids": [str(note.id)]}, headers=auth(user)
    )
    assert response.status_code == 200
    response = await client.get(f"/api/v1/notification-counter/{user.id}", headers=auth(user))
    assert response.json()["count"] == 1


@pytest.mark.asyncio
async def test_mark_read_without_counter_answers_204(client, session, factory, auth):
    user = await factory.user()
    note = Notification(user_id=user.id, message="imported")
    session.add(note)
    await session.commit()

    response = await client.post(
        f"/api/v1/notifications/{user.id}/mark-read", json={"ids": [str(note.id)]}, headers=auth(user)
    )
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_mark_read_by_type(client, session, factory, auth, mailer):
    user = await factory.user()
    await notify_user(session, user, "m", type=NotificationType.MESSAGE, mailer=mailer)

    url = f"/api/v1/notifications/{user.id}/mark-read-by-type/MESSAGE"
    assert (await client.post(url, headers=auth(user))).status_code == 200
    assert (await client.post(url, headers=auth(user))).status_code == 204

    bad = f"/api/v1/notifications/{user.id}/mark-read-by-type/BOOKING"
    assert (await client.post(bad, headers=auth(user))).status_code == 400


@pytest.mark.asyncio
async def test_delete_requires_ids(client, session, factory, auth, mailer):
    user = await factory.user()
    note = await notify_user(session, user, "bye", mailer=mailer)

    response = await client.post(f"/api/v1/notifications/{user.id}/delete", json={"ids": []}, headers=auth(user))
    assert response.status_code == 400

    response = await client.post(
        f"/api/v1/notifications/{user.id}/delete", json={"ids": [str(note.id)]}, headers=auth(user)
    )
    assert response.status_code == 200
    response = await client.get(f"/api/v1/notifications/{user.id}", headers=auth(user))
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_partnership_flow(client, factory, auth):
    brokerage = await factory.org("Harbor Realty")
    developer = await factory.org("Skyline", type=OrganizationType.DEVELOPER)
    broker = await factory.user("Broker", type=UserType.BROKER, primary_org=brokerage)
    dev_admin = await factory.user("Dev Admin", type=UserType.DEVELOPER)
    await factory.membership(developer, dev_admin, role=OrgMemberRole.OWNER_ADMIN)

    response = await client.post(
        "/api/v1/partnerships", json={"developer_org_id": str(developer.id)}, headers=auth(broker)
    )
    assert response.status_code == 200
    partnership = response.json()
    assert partnership["status"] == "PENDING"

    response = await client.get(f"/api/v1/orgs/{developer.id}/partnerships", headers=auth(dev_admin))
    assert [p["id"] for p in response.json()["data"]] == [partnership["id"]]

    response = await client.put(
        f"/api/v1/partnerships/{partnership['id']}", json={"status": "APPROVED"}, headers=auth(dev_admin)
    )
    assert response.status_code == 200
    assert response.json()["reviewed_by"] == str(dev_admin.id)

    response = await client.put(
        f"/api/v1/partnerships/{uuid.uuid4()}", json={"status": "APPROVED"}, headers=auth(dev_admin)
    )
    assert response.status_code == 204
