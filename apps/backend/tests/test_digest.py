"""Daily snapshot and weekly report jobs."""
from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from models import Comment, Project, Task
from services import digest
from services.email import EmailResult

TODAY = date(2024, 5, 15)  # a Wednesday


@pytest_asyncio.fixture(name="project")
async def project_fixture(session, auth_user_and_token):
    user, _ = auth_user_and_token
    project = Project(user_id=user.id, name="Digest")
    session.add(project)
    await session.commit()
    await session.refresh(project)
    return project


async def _task(session, project, **fields):
    task = Task(project_id=project.id, user_id=project.user_id, feature_task=fields.pop("feature_task", "T"), **fields)
    session.add(task)
    await session.commit()
    await session.refresh(task)
    return task


def test_week_dates():
    now = datetime(2024, 5, 15, 10, 30)
    start, end = digest.get_current_week_dates(now)
    assert start == datetime(2024, 5, 13)
    assert end == datetime(2024, 5, 19, 23, 59, 59, 999999)

    start, end = digest.get_previous_week_dates(now)
    assert start == datetime(2024, 5, 6)
    assert end == datetime(2024, 5, 12, 23, 59, 59, 999999)


def test_week_dates_on_monday_and_sunday():
    assert digest.get_current_week_dates(datetime(2024, 5, 13, 0, 0))[0] == datetime(2024, 5, 13)
    assert digest.get_current_week_dates(datetime(2024, 5, 19, 23, 0))[0] == datetime(2024, 5, 13)


@pytest.mark.asyncio
async def test_daily_snapshot_counts(session, auth_user_and_token, project):
    user, _ = auth_user_and_token
    await _task(session, project, feature_task="late", target_date=TODAY - timedelta(days=1))
    await _task(session, project, feature_task="today", target_date=TODAY, status="In Progress")
    await _task(session, project, feature_task="later", target_date=TODAY + timedelta(days=3))
    await _task(session, project, feature_task="finished", done=True, status="Done", target_date=TODAY - timedelta(days=5))

    snapshot = await digest.get_user_daily_snapshot(session, user, TODAY)
    assert sorted(t.feature_task for t in snapshot.tasks) == ["late", "later", "today"]
    assert snapshot.total_count == 3
    assert snapshot.overdue_count == 1
    assert snapshot.due_today_count == 1
    assert snapshot.in_progress_count == 1
    assert [p.name for p in snapshot.projects] == ["Digest"]
    assert snapshot.user_name == "Owner"


@pytest.mark.asyncio
async def test_run_daily_snapshot_skips_users_without_tasks(session, project, other_user):
    await _task(session, project, feature_task="open")

    sent = AsyncMock(return_value=EmailResult(success=True))
    with patch("services.email.send_daily_snapshot_email", sent):
        summary = await digest.run_daily_snapshot(session, TODAY)

    assert summary.success == 1
    assert summary.skipped == 1
    assert summary.failed == 0
    assert sent.await_args.args[0] == "owner@example.com"


@pytest.mark.asyncio
async def test_run_daily_snapshot_isolates_failures(session, project, make_user):
    await _task(session, project, feature_task="mine")
    second, _ = await make_user("second@example.com", name="Second", with_token=False)
    other_project = Project(user_id=second.id, name="Theirs")
    session.add(other_project)
    await session.commit()
    await session.refresh(other_project)
    await _task(session, other_project, feature_task="theirs")

    async def flaky(to_email, snapshot):
        if to_email == "owner@example.com":
            raise RuntimeError("mailbox full")
        return EmailResult(success=True)

    with patch("services.email.send_daily_snapshot_email", side_effect=flaky):
        summary = await digest.run_daily_snapshot(session, TODAY)

    assert summary.success == 1
    assert summary.failed == 1
    assert summary.errors == ["owner@example.com: mailbox full"]


@pytest.mark.asyncio
async def test_run_daily_snapshot_rolls_back_failed_query(session, project, make_user):
    await _task(session, project, feature_task="mine")
    second, _ = await make_user("second@example.com", name="Second", with_token=False)
    other_project = Project(user_id=second.id, name="Theirs")
    session.add(other_project)
    await session.commit()
    await session.refresh(other_project)
    await _task(session, other_project, feature_task="theirs")

    real_snapshot = digest.get_user_daily_snapshot

    async def aborts_for_owner(db, user, today=None):
        if user.email == "owner@example.com":
            raise OperationalError("SELECT", {}, Exception("current transaction is aborted"))
        return await real_snapshot(db, user, today)

    rollback = AsyncMock(wraps=session.rollback)
    sent = AsyncMock(return_value=EmailResult(success=True))
    with patch.object(digest, "get_user_daily_snapshot", side_effect=aborts_for_owner), \
            patch.object(session, "rollback", rollback), \
            patch("services.email.send_daily_snapshot_email", sent):
        summary = await digest.run_daily_snapshot(session, TODAY)

    rollback.assert_awaited_once()
    assert summary.success == 1
    assert summary.failed == 1
    assert sent.await_args.args[0] == "second@example.com"


@pytest.mark.asyncio
async def test_weekly_report_skips_quiet_week(session, auth_user_and_token):
    sent = AsyncMock()
    with patch("services.email.send_weekly_report_email", sent):
        result = await digest.run_weekly_report(session, now=datetime(2030, 1, 9))

    assert result.skipped is True
    assert result.report.has_activity is False
    sent.assert_not_awaited()


@pytest.mark.asyncio
async def test_weekly_report_counts_previous_week(session, auth_user_and_token, other_user, project):
    user, _ = auth_user_and_token
    in_week = datetime(2024, 5, 8, 12, 0)
    outside = datetime(2024, 5, 14, 12, 0)

    project.created_at = in_week
    session.add(project)
    await session.commit()

    created = await _task(session, project, feature_task="new", created_at=in_week, updated_at=in_week)
    await _task(session, project, feature_task="done", done=True, status="Done", created_at=outside, updated_at=in_week)
    await _task(session, project, feature_task="too late", created_at=outside, updated_at=outside)
    session.add(Comment(task_id=created.id, user_id=user.id, author="Owner", content="c", created_at=in_week))
    await session.commit()

    sent = AsyncMock(return_value=EmailResult(success=True))
    with patch("services.email.send_weekly_report_email", sent):
        result = await digest.run_weekly_report(session, now=datetime(2024, 5, 15, 9, 0))

    assert result.skipped is False
    assert result.report.totals == {
        "tasks_created": 1,
        "tasks_completed": 1,
        "comments_added": 1,
        "projects_created": 1,
    }
    assert result.report.activities[0].user_name == "Owner"
    assert result.report.activities[0].total == 4
    assert result.summary.success == 2
    assert sorted(call.args[0] for call in sent.await_args_list) == ["other@example.com", "owner@example.com"]


@pytest.mark.asyncio
async def test_digest_test_reports_per_recipient(session, project, other_user):
    await _task(session, project, feature_task="open")

    result = await digest.run_digest_test(session, today=TODAY)
    assert result.total_users == 2
    assert result.successful == ["owner@example.com"]
    assert result.failed == [{"email": "other@example.com", "error": "No open tasks"}]

    result = await digest.run_digest_test(session, email="OWNER@example.com", today=TODAY)
    assert result.total_users == 1
    assert result.successful == ["owner@example.com"]

    result = await digest.run_digest_test(session, email="ghost@example.com", today=TODAY)
    assert result.total_users == 0
