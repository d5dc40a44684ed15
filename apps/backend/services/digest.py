"""Scheduled digest jobs: the daily task snapshot and the weekly team report.

Both jobs only read task/project/comment data and send email. Neither keeps
an "already sent" marker, so re-running a job for the same window sends the
same emails again. One recipient's failure never aborts the batch.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from models import Comment, Profile, Project, Task
from observability.logging import get_logger
from observability.metrics import digest_emails_total
from services import email as email_service

logger = get_logger(__name__)


@dataclass
class DailySnapshot:
    user_id: int
    user_name: str
    user_email: str
    tasks: List[Task]
    projects: List[Project]
    overdue_count: int
    due_today_count: int
    in_progress_count: int

    @property
    def total_count(self) -> int:
        return len(self.tasks)


@dataclass
class UserActivity:
    user_id: int
    user_name: str
    user_email: str
    tasks_created: int = 0
    tasks_completed: int = 0
    comments_added: int = 0
    projects_created: int = 0

    @property
    def total(self) -> int:
        return self.tasks_created + self.tasks_completed + self.comments_added + self.projects_created


@dataclass
class WeeklyReport:
    week_start: datetime
    week_end: datetime
    activities: List[UserActivity]

    @property
    def totals(self) -> Dict[str, int]:
        return {
            "tasks_created": sum(a.tasks_created for a in self.activities),
            "tasks_completed": sum(a.tasks_completed for a in self.activities),
            "comments_added": sum(a.comments_added for a in self.activities),
            "projects_created": sum(a.projects_created for a in self.activities),
        }

    @property
    def has_activity(self) -> bool:
        return any(self.totals.values())


@dataclass
class DigestSummary:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def record_failure(self, email: str, error: str) -> None:
        self.failed += 1
        self.errors.append(f"{email}: {error}")


# ============== DATA ==============

async def get_all_users(session: AsyncSession) -> List[Profile]:
    result = await session.exec(select(Profile).order_by(Profile.created_at, Profile.id))
    return list(result.all())


async def get_user_daily_snapshot(session: AsyncSession, user: Profile, today: Optional[date] = None) -> DailySnapshot:
    """Incomplete tasks owned by the user, with overdue / due-today / in-progress counts."""
    today = today or datetime.utcnow().date()

    result = await session.exec(
        select(Task)
        .where(Task.user_id == user.id, Task.done == False)  # noqa: E712
        .order_by(Task.updated_at.desc())
    )
    tasks = list(result.all())

    result = await session.exec(
        select(Project).where(Project.user_id == user.id).order_by(Project.created_at.desc())
    )
    projects = list(result.all())

    return DailySnapshot(
        user_id=user.id,
        user_name=user.display_name,
        user_email=user.email,
        tasks=tasks,
        projects=projects,
        overdue_count=sum(1 for t in tasks if t.target_date and t.target_date < today and not t.done),
        due_today_count=sum(1 for t in tasks if t.target_date and t.target_date == today and not t.done),
        in_progress_count=sum(1 for t in tasks if t.status == "In Progress"),
    )


async def _count(session: AsyncSession, query) -> int:
    result = await session.exec(query)
    return result.one()


async def get_user_weekly_activity(
    session: AsyncSession, user: Profile, week_start: datetime, week_end: datetime
) -> UserActivity:
    """Counts of the user's writes inside [week_start, week_end]."""
    return UserActivity(
        user_id=user.id,
        user_name=user.display_name,
        user_email=user.email,
        tasks_created=await _count(session, select(func.count(Task.id)).where(
            Task.user_id == user.id,
            Task.created_at >= week_start,
            Task.created_at <= week_end,
        )),
        tasks_completed=await _count(session, select(func.count(Task.id)).where(
            Task.user_id == user.id,
            Task.done == True,  # noqa: E712
            Task.updated_at >= week_start,
            Task.updated_at <= week_end,
        )),
        comments_added=await _count(session, select(func.count(Comment.id)).where(
            Comment.user_id == user.id,
            Comment.created_at >= week_start,
            Comment.created_at <= week_end,
        )),
        projects_created=await _count(session, select(func.count(Project.id)).where(
            Project.user_id == user.id,
            Project.created_at >= week_start,
            Project.created_at <= week_end,
        )),
    )


async def get_all_users_weekly_activity(
    session: AsyncSession, week_start: datetime, week_end: datetime
) -> List[UserActivity]:
    """Every user's activity, most active first."""
    activities = [
        await get_user_weekly_activity(session, user, week_start, week_end)
        for user in await get_all_users(session)
    ]
    return sorted(activities, key=lambda a: a.total, reverse=True)


def get_current_week_dates(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Monday 00:00:00 to Sunday 23:59:59.999999 of the week containing ``now``."""
    now = now or datetime.utcnow()
    week_start = datetime.combine(now.date() - timedelta(days=now.weekday()), datetime.min.time())
    week_end = week_start + timedelta(days=7) - timedelta(microseconds=1)
    return week_start, week_end


def get_previous_week_dates(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    current_start, _ = get_current_week_dates(now)
    week_start = current_start - timedelta(days=7)
    return week_start, current_start - timedelta(microseconds=1)


# ============== JOBS ==============

async def run_daily_snapshot(session: AsyncSession, today: Optional[date] = None) -> DigestSummary:
    summary = DigestSummary()
    user_ids = [u.id for u in await get_all_users(session)]
    logger.info(f"[Digest] Daily snapshot for {len(user_ids)} user(s)")

    for user_id in user_ids:
        # A rollback expires loaded rows; reload each user by id
        user = await session.get(Profile, user_id)
        email = user.email
        try:
            snapshot = await get_user_daily_snapshot(session, user, today)
            if not snapshot.tasks:
                summary.skipped += 1
                digest_emails_total.labels(job="daily_snapshot", outcome="skipped").inc()
                continue

            result = await email_service.send_daily_snapshot_email(email, snapshot)
            if not result.success:
                raise RuntimeError(result.error or "Email send failed")
            summary.success += 1
            digest_emails_total.labels(job="daily_snapshot", outcome="success").inc()
        except Exception as e:
            await session.rollback()
            logger.error(f"[Digest] Daily snapshot to {email} failed: {e}")
            summary.record_failure(email, str(e))
            digest_emails_total.labels(job="daily_snapshot", outcome="failed").inc()

    logger.info(f"[Digest] Daily snapshot done: {summary}")
    return summary


@dataclass
class WeeklyReportResult:
    report: WeeklyReport
    summary: Optional[DigestSummary] = None

    @property
    def skipped(self) -> bool:
        return self.summary is None


async def run_weekly_report(session: AsyncSession, now: Optional[datetime] = None) -> WeeklyReportResult:
    """Send the previous week's team report to every user; skipped when nobody did anything."""
    week_start, week_end = get_previous_week_dates(now)
    users = await get_all_users(session)
    report = WeeklyReport(
        week_start=week_start,
        week_end=week_end,
        activities=await get_all_users_weekly_activity(session, week_start, week_end),
    )

    if not report.has_activity:
        logger.info(f"[Digest] No activity for week {week_start.date()}, skipping report")
        return WeeklyReportResult(report=report)

    summary = DigestSummary()
    for user in users:
        try:
            result = await email_service.send_weekly_report_email(user.email, user.display_name, report)
            if not result.success:
                raise RuntimeError(result.error or "Email send failed")
            summary.success += 1
            digest_emails_total.labels(job="weekly_report", outcome="success").inc()
        except Exception as e:
            logger.error(f"[Digest] Weekly report to {user.email} failed: {e}")
            summary.record_failure(user.email, str(e))
            digest_emails_total.labels(job="weekly_report", outcome="failed").inc()

    logger.info(f"[Digest] Weekly report done: {summary}")
    return WeeklyReportResult(report=report, summary=summary)


@dataclass
class DigestTestResult:
    total_users: int
    successful: List[str]
    failed: List[Dict[str, str]]


async def run_digest_test(session: AsyncSession, email: Optional[str] = None, today: Optional[date] = None) -> DigestTestResult:
    """
    Send the daily snapshot to everyone, or to one address, concurrently.

    ``total_users`` is 0 when ``email`` matches nobody.
    """
    users = await get_all_users(session)
    if email:
        users = [u for u in users if u.email.lower() == email.strip().lower()]

    # Data is gathered sequentially on the one session; only the sends fan out
    snapshots = [await get_user_daily_snapshot(session, user, today) for user in users]

    async def send(snapshot: DailySnapshot) -> str:
        if not snapshot.tasks:
            raise RuntimeError("No open tasks")
        result = await email_service.send_daily_snapshot_email(snapshot.user_email, snapshot)
        if not result.success:
            raise RuntimeError(result.error or "Email send failed")
        return snapshot.user_email

    outcomes = await asyncio.gather(*(send(s) for s in snapshots), return_exceptions=True)

    successful: List[str] = []
    failed: List[Dict[str, str]] = []
    for snapshot, outcome in zip(snapshots, outcomes):
        if isinstance(outcome, BaseException):
            failed.append({"email": snapshot.user_email, "error": str(outcome)})
        else:
            successful.append(outcome)

    return DigestTestResult(total_users=len(users), successful=successful, failed=failed)
