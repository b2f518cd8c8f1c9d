"""
HTTP tests for messaging endpoints.
"""

from __future__ import annotations

import uuid

import pytest

from estate_api.services.email import get_email_dispatcher
from estate_shared.schemas.common import OrganizationType, UserType


@pytest.mark.asyncio
async def test_send_message_and_read_history(client, factory, auth):
    buyer = await factory.user("Bella Buyer")
    owner = await factory.user("Olivia Owner", type=UserType.OWNER)
    listing = await factory.listing(owner=owner)

    response = await client.post(
        "/api/v1/messages",
        json={"message": "Is it available?", "property_id": str(listing.id), "recipient_id": str(owner.id)},
        headers=auth(buyer),
    )
    assert response.status_code == 200
    sent = response.json()
    assert sent["message"] == "Is it available?"
    thread_id = sent["thread_id"]

    response = await client.get(f"/api/v1/messages/thread/{thread_id}", headers=auth(owner))
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["page"] == 1
    [item] = body["data"]
    assert item["sender"]["full_name"] == "Bella Buyer"
    assert item["recipient"]["id"] == str(owner.id)
    assert item["thread"]["type"] == "DIRECT"
    assert item["thread"]["property"]["id"] == str(listing.id)

    response = await client.get(f"/api/v1/messages/property/{listing.id}", headers=auth(buyer))
    assert [m["id"] for m in response.json()["data"]] == [sent["id"]]


@pytest.mark.asyncio
async def test_property_history_hides_other_conversations(client, factory, auth):
    buyer = await factory.user("Buyer")
    other_buyer = await factory.user("Other Buyer")
    owner = await factory.user("Owner", type=UserType.OWNER)
    listing = await factory.listing(owner=owner)
    await client.post(
        "/api/v1/messages",
        json={"message": "Hi", "property_id": str(listing.id), "recipient_id": str(owner.id)},
        headers=auth(buyer),
    )

    response = await client.get(f"/api/v1/messages/property/{listing.id}", headers=auth(other_buyer))
    assert response.status_code == 200
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_send_requires_auth(client):
    response = await client.post("/api/v1/messages", json={"message": "hi"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_property_answers_204(client, factory, auth):
    sender = await factory.user()
    recipient = await factory.user()
    response = await client.post(
        "/api/v1/messages",
        json={"message": "hi", "property_id": str(uuid.uuid4()), "recipient_id": str(recipient.id)},
        headers=auth(sender),
    )
    assert response.status_code == 204
    assert response.content == b""


@pytest.mark.asyncio
async def test_malformed_id_answers_400(client, factory, auth):
    sender = await factory.user()
    response = await client.post(
        "/api/v1/messages",
        json={"message": "hi", "property_id": "not-a-uuid", "recipient_id": "x"},
        headers=auth(sender),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_broker_to_owner_cold_contact_forbidden(client, factory, auth):
    broker = await factory.user("Broker", type=UserType.BROKER)
    owner = await factory.user("Owner", type=UserType.OWNER)
    listing = await factory.listing(owner=owner)
    response = await client.post(
        "/api/v1/messages",
        json={"message": "hi", "property_id": str(listing.id), "recipient_id": str(owner.id)},
        headers=auth(broker),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_thread_history_forbidden_for_non_participant(client, factory, auth):
    actor = await factory.user("Actor")
    other = await factory.user("Other")
    stranger = await factory.user("Stranger")
    response = await client.post(
        "/api/v1/message-threads",
        json={"title": "Project", "participants": [str(other.id)]},
        headers=auth(actor),
    )
    thread_id = response.json()["id"]

    response = await client.get(f"/api/v1/messages/thread/{thread_id}", headers=auth(stranger))
    assert response.status_code == 403

    response = await client.get(f"/api/v1/messages/thread/{uuid.uuid4()}", headers=auth(stranger))
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_create_group_thread_and_list(client, factory, auth):
    actor = await factory.user("Actor")
    other = await factory.user("Other")

    response = await client.post(
        "/api/v1/message-threads",
        json={"title": "  Weekly sync ", "participants": [str(other.id), "junk"]},
        headers=auth(actor),
    )
    assert response.status_code == 200
    thread = response.json()
    assert thread["type"] == "GROUP"
    assert thread["title"] == "Weekly sync"
    assert {p["id"] for p in thread["participants"]} == {str(actor.id), str(other.id)}
    assert thread["other_user"]["id"] == str(other.id)

    await client.post(
        "/api/v1/messages",
        json={"message": "Agenda attached", "thread_id": thread["id"]},
        headers=auth(actor),
    )

    response = await client.get("/api/v1/message-threads", headers=auth(other))
    assert response.status_code == 200
    [listed] = response.json()["data"]
    assert listed["id"] == thread["id"]
    assert listed["last_message"]["message"] == "Agenda attached"
    assert listed["other_user"]["id"] == str(actor.id)


@pytest.mark.asyncio
async def test_create_group_thread_without_participants(client, factory, auth):
    actor = await factory.user()
    response = await client.post(
        "/api/v1/message-threads",
        json={"title": "Solo", "participants": []},
        headers=auth(actor),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_threads_newest_activity_first(client, factory, auth):
    buyer = await factory.user("Buyer")
    owner = await factory.user("Owner", type=UserType.OWNER)
    first = await factory.listing("First", owner=owner)
    second = await factory.listing("Second", owner=owner)

    for listing in (first, second, first):
        await client.post(
            "/api/v1/messages",
            json={"message": listing.name, "property_id": str(listing.id), "recipient_id": str(owner.id)},
            headers=auth(buyer),
        )

    response = await client.get("/api/v1/message-threads", headers=auth(owner))
    titles = [t["title"] for t in response.json()["data"]]
    assert titles == ["First", "Second"]


@pytest.mark.asyncio
async def test_broadcast_endpoint(client, factory, auth):
    dev_user = await factory.user("Dev", type=UserType.DEVELOPER)
    dev_org = await factory.org("Skyline", type=OrganizationType.DEVELOPER)
    await factory.membership(dev_org, dev_user)
    brokerage = await factory.org("Harbor")
    await factory.members(brokerage, 3)
    await factory.partnership(brokerage, dev_org)

    response = await client.post(
        "/api/v1/message-broadcasts",
        json={"message": "Open house Friday"},
        headers=auth(dev_user),
    )
    assert response.status_code == 200
    assert response.json() == {"delivered": 3, "threads": 1}

    response = await client.get("/api/v1/message-threads", headers=auth(dev_user))
    [thread] = response.json()["data"]
    assert thread["type"] == "BROADCAST"
    assert thread["developer_org"]["id"] == str(dev_org.id)
    assert thread["brokerage_org"]["name"] == "Harbor"


@pytest.mark.asyncio
async def test_broadcast_forbidden_without_developer_membership(client, factory, auth):
    user = await factory.user()
    response = await client.post(
        "/api/v1/message-broadcasts",
        json={"message": "Hello"},
        headers=auth(user),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_notification_email_sent_after_response(client, factory, auth, mailer):
    buyer = await factory.user("Bella Buyer")
    owner = await factory.user("Olivia Owner", type=UserType.OWNER, email="olivia@example.com")
    listing = await factory.listing(owner=owner)

    response = await client.post(
        "/api/v1/messages",
        json={"message": "Is it available?", "property_id": str(listing.id), "recipient_id": str(owner.id)},
        headers=auth(buyer),
    )
    assert response.status_code == 200
    [(to, _, body)] = mailer.sent
    assert to == "olivia@example.com"
    assert "Is it available?" in body


@pytest.mark.asyncio
async def test_mail_outage_does_not_fail_request(client, factory, auth, failing_mailer):
    from estate_api.main import app

    app.dependency_overrides[get_email_dispatcher] = lambda: failing_mailer
    buyer = await factory.user("Buyer")
    owner = await factory.user("Owner", type=UserType.OWNER, email="owner@example.com")
    listing = await factory.listing(owner=owner)

    response = await client.post(
        "/api/v1/messages",
        json={"message": "Hello", "property_id": str(listing.id), "recipient_id": str(owner.id)},
        headers=auth(buyer),
    )
    assert response.status_code == 200
    assert failing_mailer.sent == []
