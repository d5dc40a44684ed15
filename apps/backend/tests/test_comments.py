"""Comment routes, including email failure isolation."""
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlmodel import select

from models import Comment, Notification


@pytest_asyncio.fixture(name="task_id")
async def task_id_fixture(client: AsyncClient, auth_user_and_token):
    _, token = auth_user_and_token
    headers = {"Authorization": f"Bearer {token}"}
    res = await client.post("/api/projects", json={"name": "Comments", "visibility": "all"}, headers=headers)
    res = await client.post(
        "/api/tasks",
        json={"projectId": res.json()["id"], "featureTask": "Review copy", "assignedTo": "Other"},
        headers=headers,
    )
    return res.json()["id"]


@pytest.mark.asyncio
async def test_list_comments_requires_task_id(client: AsyncClient, auth_user_and_token):
    _, token = auth_user_and_token
    res = await client.get("/api/comments", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 400
    assert res.json() == {"error": "Task ID is required"}


@pytest.mark.asyncio
async def test_create_and_list_comments(client: AsyncClient, auth_user_and_token, task_id):
    user, token = auth_user_and_token
    user_id = user.id
    headers = {"Authorization": f"Bearer {token}"}

    res = await client.post(
        "/api/comments",
        json={"taskId": task_id, "content": "  Looks good  ", "author": "Owner"},
        headers=headers,
    )
    assert res.status_code == 201
    created = res.json()
    assert created["content"] == "Looks good"
    assert created["userId"] == user_id

    await client.post("/api/comments", json={"taskId": task_id, "content": "Second", "author": "Owner"}, headers=headers)

    res = await client.get(f"/api/comments?taskId={task_id}", headers=headers)
    assert res.status_code == 200
    assert [c["content"] for c in res.json()] == ["Second", "Looks good"]


@pytest.mark.asyncio
async def test_comment_text_is_stored_verbatim(client: AsyncClient, auth_user_and_token, task_id):
    _, token = auth_user_and_token
    headers = {"Authorization": f"Bearer {token}"}
    text = "Change the return type to List<int> when a < b and c > d"

    res = await client.post("/api/comments", json={"taskId": task_id, "content": text, "author": "Owner"}, headers=headers)
    assert res.status_code == 201
    assert res.json()["content"] == text

    res = await client.get(f"/api/comments?taskId={task_id}", headers=headers)
    assert res.json()[0]["content"] == text


@pytest.mark.asyncio
async def test_create_comment_validation(client: AsyncClient, auth_user_and_token, task_id):
    _, token = auth_user_and_token
    headers = {"Authorization": f"Bearer {token}"}

    res = await client.post("/api/comments", json={"taskId": task_id, "author": "Owner"}, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"error": "Task ID and content are required"}

    res = await client.post("/api/comments", json={"taskId": task_id, "content": "hi"}, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"error": "Author is required"}

    res = await client.post("/api/comments", json={"taskId": 4242, "content": "hi", "author": "Owner"}, headers=headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_comment_survives_email_failure(client: AsyncClient, session, auth_user_and_token, other_user, task_id):
    """The task is assigned to Other, so a comment by Owner triggers an email that blows up."""
    _, token = auth_user_and_token
    other, _ = other_user
    other_id = other.id

    failing = AsyncMock(side_effect=RuntimeError("smtp unreachable"))
    with patch("services.email.send_task_comment_email", failing):
        res = await client.post(
            "/api/comments",
            json={"taskId": task_id, "content": "Ping", "author": "Owner"},
            headers={"Authorization": f"Bearer {token}"},
        )

    assert res.status_code == 201
    assert res.json()["content"] == "Ping"
    failing.assert_awaited_once()

    comments = (await session.exec(select(Comment).where(Comment.task_id == task_id))).all()
    assert len(comments) == 1

    # The in-app notification is its own side effect and still lands
    notes = (await session.exec(
        select(Notification).where(Notification.user_id == other_id, Notification.type == "comment_added")
    )).all()
    assert len(notes) == 1


@pytest.mark.asyncio
async def test_delete_comment(client: AsyncClient, auth_user_and_token, task_id):
    _, token = auth_user_and_token
    headers = {"Authorization": f"Bearer {token}"}
    res = await client.post("/api/comments", json={"taskId": task_id, "content": "tmp", "author": "Owner"}, headers=headers)
    comment_id = res.json()["id"]

    res = await client.delete(f"/api/comments/{comment_id}", headers=headers)
    assert res.status_code == 200

    res = await client.delete(f"/api/comments/{comment_id}", headers=headers)
    assert res.status_code == 404
