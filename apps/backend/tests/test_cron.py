"""Cron endpoints: secret gating and response shapes."""
from datetime import datetime

import pytest
from httpx import AsyncClient

from models import Project, Task


@pytest.mark.asyncio
async def test_cron_open_without_secret(client: AsyncClient):
    res = await client.get("/api/cron/daily-snapshot")
    assert res.status_code == 200
    assert res.json() == {
        "message": "Daily snapshot emails sent",
        "results": {"success": 0, "failed": 0, "skipped": 0, "errors": []},
    }


@pytest.mark.asyncio
async def test_cron_secret_required_when_configured(client: AsyncClient, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "tick-tock")

    for path in ("/api/cron/daily-snapshot", "/api/cron/weekly-report", "/api/digest/test"):
        res = await client.get(path)
        assert res.status_code == 401

    res = await client.post("/api/cron/daily-snapshot", headers={"Authorization": "Bearer wrong"})
    assert res.status_code == 401

    res = await client.post("/api/cron/daily-snapshot", headers={"Authorization": "Bearer tick-tock"})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_daily_snapshot_counts_recipients(client: AsyncClient, session, auth_user_and_token, other_user):
    user, _ = auth_user_and_token
    project = Project(user_id=user.id, name="P")
    session.add(project)
    await session.commit()
    await session.refresh(project)
    session.add(Task(project_id=project.id, user_id=user.id, feature_task="open"))
    await session.commit()

    res = await client.post("/api/cron/daily-snapshot")
    assert res.json()["results"] == {"success": 1, "failed": 0, "skipped": 1, "errors": []}


@pytest.mark.asyncio
async def test_weekly_report_without_activity(client: AsyncClient, auth_user_and_token):
    res = await client.get("/api/cron/weekly-report")
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "No activity to report"
    assert datetime.fromisoformat(body["weekStart"]).weekday() == 0
    assert "stats" not in body


@pytest.mark.asyncio
async def test_current_week_activity_is_not_reported(client: AsyncClient, auth_user_and_token):
    _, token = auth_user_and_token
    await client.post("/api/projects", json={"name": "Recent"}, headers={"Authorization": f"Bearer {token}"})

    res = await client.get("/api/cron/weekly-report")
    assert res.json()["message"] == "No activity to report"


@pytest.mark.asyncio
async def test_weekly_report_response_shape(client: AsyncClient, session, auth_user_and_token):
    user, _ = auth_user_and_token
    res = await client.get("/api/cron/weekly-report")
    week_start = datetime.fromisoformat(res.json()["weekStart"])

    session.add(Project(user_id=user.id, name="Last week", created_at=week_start.replace(hour=12)))
    await session.commit()

    res = await client.get("/api/cron/weekly-report")
    body = res.json()
    assert body["message"] == "Weekly reports sent"
    assert body["stats"] == {
        "totalTasksCreated": 0,
        "totalTasksCompleted": 0,
        "totalComments": 0,
        "totalProjects": 1,
    }
    assert body["results"] == {"success": 1, "failed": 0, "errors": []}


@pytest.mark.asyncio
async def test_digest_test_endpoint(client: AsyncClient, auth_user_and_token):
    res = await client.get("/api/digest/test")
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Test digest completed"
    assert body["totalUsers"] == 1
    assert body["emailsSent"] == 0
    assert body["emailsFailed"] == 1
    assert body["results"]["failed"] == [{"email": "owner@example.com", "error": "No open tasks"}]
    assert "timestamp" in body

    res = await client.get("/api/digest/test?email=ghost@example.com")
    assert res.status_code == 404
    assert res.json()["error"] == "User not found"
