"""Notification fanout and the notifications inbox routes."""
import typing
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pydantic
import pytest
from httpx import AsyncClient
from sqlmodel import select

from models import Notification
from repositories import NotificationRepository
from schemas import NotificationRead, NotificationType
from services.email import EmailResult


async def _notifications_for(session, user_id, type=None):
    query = select(Notification).where(Notification.user_id == user_id)
    if type:
        query = query.where(Notification.type == type)
    return (await session.exec(query)).all()


async def _project(client, token, **extra):
    res = await client.post(
        "/api/projects",
        json={"name": "P", **extra},
        headers={"Authorization": f"Bearer {token}"},
    )
    return res.json()["id"]


@pytest.mark.asyncio
async def test_list_notifications_requires_auth(client: AsyncClient):
    res = await client.get("/api/notifications")
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_task_assignment_notifies_named_profile(client: AsyncClient, session, auth_user_and_token, make_user):
    _, token = auth_user_and_token
    alice, _ = await make_user("alice@example.com", name="Alice")
    alice_id = alice.id
    project_id = await _project(client, token, visibility="private")

    res = await client.post(
        "/api/tasks",
        json={"projectId": project_id, "featureTask": "Build invoice export", "assignedTo": "Alice"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert res.status_code == 201

    notes = await _notifications_for(session, alice_id, "task_assigned")
    assert len(notes) == 1
    assert "Build invoice export" in notes[0].title
    assert notes[0].link == f"/projects/{project_id}"
    assert notes[0].meta["taskId"] == res.json()["id"]


@pytest.mark.asyncio
async def test_task_assignment_without_matching_profile(client: AsyncClient, session, auth_user_and_token):
    _, token = auth_user_and_token
    project_id = await _project(client, token)

    res = await client.post(
        "/api/tasks",
        json={"projectId": project_id, "featureTask": "Nobody home", "assignedTo": "Alice"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert res.status_code == 201
    assert (await session.exec(select(Notification))).all() == []


@pytest.mark.asyncio
async def test_assignee_resolved_by_email(client: AsyncClient, session, auth_user_and_token, make_user):
    _, token = auth_user_and_token
    bob, _ = await make_user("bob@example.com", name="Robert")
    bob_id = bob.id
    project_id = await _project(client, token)

    await client.post(
        "/api/tasks",
        json={"projectId": project_id, "featureTask": "Fix CI", "assignedTo": "BOB@example.com"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert len(await _notifications_for(session, bob_id, "task_assigned")) == 1


@pytest.mark.asyncio
async def test_reassignment_notifies_new_assignee_only(client: AsyncClient, session, auth_user_and_token, make_user):
    _, token = auth_user_and_token
    headers = {"Authorization": f"Bearer {token}"}
    alice, _ = await make_user("alice@example.com", name="Alice")
    carol, _ = await make_user("carol@example.com", name="Carol")
    alice_id, carol_id = alice.id, carol.id
    project_id = await _project(client, token)

    res = await client.post(
        "/api/tasks",
        json={"projectId": project_id, "featureTask": "Handoff", "assignedTo": "Alice"},
        headers=headers,
    )
    task_id = res.json()["id"]

    # Same assignee again: no new notification
    await client.put(f"/api/tasks/{task_id}", json={"assignedTo": "Alice", "notes": "x"}, headers=headers)
    assert len(await _notifications_for(session, alice_id)) == 1

    await client.put(f"/api/tasks/{task_id}", json={"assignedTo": "Carol"}, headers=headers)
    carol_notes = await _notifications_for(session, carol_id, "task_assigned")
    assert len(carol_notes) == 1
    assert "Alice" not in carol_notes[0].message
    assert len(await _notifications_for(session, alice_id)) == 1


@pytest.mark.asyncio
async def test_comment_by_assignee_does_not_notify(client: AsyncClient, session, make_user):
    alice, alice_token = await make_user("alice@example.com", name="Alice")
    alice_id = alice.id
    headers = {"Authorization": f"Bearer {alice_token}"}

    res = await client.post("/api/projects", json={"name": "Mine"}, headers=headers)
    res = await client.post(
        "/api/tasks",
        json={"projectId": res.json()["id"], "featureTask": "Self", "assignedTo": "Alice"},
        headers=headers,
    )
    task_id = res.json()["id"]

    res = await client.post(
        "/api/comments",
        json={"taskId": task_id, "content": "note to self", "author": "Alice"},
        headers=headers,
    )
    assert res.status_code == 201
    assert await _notifications_for(session, alice_id, "comment_added") == []


@pytest.mark.asyncio
async def test_assignment_email_failure_keeps_task_and_notification(client: AsyncClient, session, auth_user_and_token, make_user):
    _, token = auth_user_and_token
    alice, _ = await make_user("alice@example.com", name="Alice")
    alice_id = alice.id
    project_id = await _project(client, token)

    failed = AsyncMock(return_value=EmailResult(success=False, error="bounced"))
    with patch("services.email.send_task_assignment_email", failed):
        res = await client.post(
            "/api/tasks",
            json={"projectId": project_id, "featureTask": "Resilient", "assignedTo": "Alice"},
            headers={"Authorization": f"Bearer {token}"},
        )

    assert res.status_code == 201
    failed.assert_awaited_once()
    assert len(await _notifications_for(session, alice_id, "task_assigned")) == 1


@pytest.mark.asyncio
async def test_chat_message_notifies_everyone_but_sender(client: AsyncClient, session, auth_user_and_token, other_user, make_user):
    owner, token = auth_user_and_token
    other, _ = other_user
    third, _ = await make_user("third@example.com", name="Third")
    owner_id, other_id, third_id = owner.id, other.id, third.id
    headers = {"Authorization": f"Bearer {token}"}

    chat_id = (await client.get("/api/chat", headers=headers)).json()["chatId"]
    res = await client.post("/api/chat", json={"chatId": chat_id, "content": "standup in 5"}, headers=headers)
    assert res.status_code == 200

    assert await _notifications_for(session, owner_id, "chat_message") == []
    for user_id in (other_id, third_id):
        notes = await _notifications_for(session, user_id, "chat_message")
        assert len(notes) == 1
        assert notes[0].message == "standup in 5"
        assert notes[0].meta["chatId"] == chat_id


@pytest.mark.asyncio
async def test_inbox_routes(client: AsyncClient, session, auth_user_and_token):
    user, token = auth_user_and_token
    user_id = user.id
    headers = {"Authorization": f"Bearer {token}"}

    repo = NotificationRepository(session)
    first = await repo.create(user_id=user_id, type="task_assigned", title="N1", message="m1")
    await repo.create(user_id=user_id, type="comment_added", title="N2", message="m2", metadata={"taskId": 7})
    await session.commit()
    first_id = first.id

    res = await client.get("/api/notifications", headers=headers)
    assert res.status_code == 200
    data = res.json()
    assert [n["title"] for n in data] == ["N2", "N1"]
    assert data[0]["metadata"] == {"taskId": 7}
    assert data[0]["read"] is False

    res = await client.get("/api/notifications/count", headers=headers)
    assert res.json() == {"unread": 2}

    res = await client.post(f"/api/notifications/{first_id}/read", headers=headers)
    assert res.status_code == 200
    assert res.json()["read"] is True

    res = await client.get("/api/notifications?unreadOnly=true", headers=headers)
    assert [n["title"] for n in res.json()] == ["N2"]

    res = await client.post("/api/notifications/read-all", headers=headers)
    assert res.status_code == 200
    res = await client.get("/api/notifications/count", headers=headers)
    assert res.json() == {"unread": 0}

    res = await client.delete(f"/api/notifications/{first_id}", headers=headers)
    assert res.status_code == 200
    res = await client.get("/api/notifications", headers=headers)
    assert [n["title"] for n in res.json()] == ["N2"]


@pytest.mark.asyncio
async def test_inbox_is_recipient_only(client: AsyncClient, session, auth_user_and_token, other_user):
    user, _ = auth_user_and_token
    _, other_token = other_user
    note = await NotificationRepository(session).create(user_id=user.id, type="task_assigned", title="Mine", message="m")
    await session.commit()
    note_id = note.id

    headers = {"Authorization": f"Bearer {other_token}"}
    res = await client.post(f"/api/notifications/{note_id}/read", headers=headers)
    assert res.status_code == 404
    res = await client.delete(f"/api/notifications/{note_id}", headers=headers)
    assert res.status_code == 404
    res = await client.get("/api/notifications", headers=headers)
    assert res.json() == []


def test_notification_types_are_a_closed_set():
    assert set(typing.get_args(NotificationType)) == {"chat_message", "task_assigned", "task_updated", "comment_added"}

    now = datetime.utcnow()
    fields = dict(id=1, user_id=1, title="t", message="m", read=False, created_at=now, updated_at=now)
    assert NotificationRead(type="task_updated", **fields).type == "task_updated"
    with pytest.raises(pydantic.ValidationError):
        NotificationRead(type="reminder", **fields)
