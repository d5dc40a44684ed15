"""Scheduled job endpoints - daily snapshot, weekly report and a manual digest test.

Called by an external scheduler. When CRON_SECRET is set each call must carry
``Authorization: Bearer <CRON_SECRET>``.
"""
import hmac
import os
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import parse_bearer
from exceptions import AuthError, NotFoundError
from observability.logging import get_logger
from services.digest import run_daily_snapshot, run_digest_test, run_weekly_report

logger = get_logger(__name__)

router = APIRouter(tags=["cron"])


def require_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    secret = os.getenv("CRON_SECRET")
    if not secret:
        return
    token = parse_bearer(authorization) or ""
    if not hmac.compare_digest(token, secret):
        logger.warning("[Cron] Rejected call with missing or wrong secret")
        raise AuthError("Unauthorized")


@router.api_route("/api/cron/daily-snapshot", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
async def daily_snapshot(session: AsyncSession = Depends(get_session)):
    summary = await run_daily_snapshot(session)
    return {
        "message": "Daily snapshot emails sent",
        "results": {
            "success": summary.success,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "errors": summary.errors,
        },
    }


@router.api_route("/api/cron/weekly-report", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
async def weekly_report(session: AsyncSession = Depends(get_session)):
    result = await run_weekly_report(session)
    report = result.report
    week = {
        "weekStart": report.week_start.isoformat(),
        "weekEnd": report.week_end.isoformat(),
    }
    if result.skipped:
        return {"message": "No activity to report", **week}

    totals = report.totals
    summary = result.summary
    return {
        "message": "Weekly reports sent",
        **week,
        "stats": {
            "totalTasksCreated": totals["tasks_created"],
            "totalTasksCompleted": totals["tasks_completed"],
            "totalComments": totals["comments_added"],
            "totalProjects": totals["projects_created"],
        },
        "results": {
            "success": summary.success,
            "failed": summary.failed,
            "errors": summary.errors,
        },
    }


@router.get("/api/digest/test", dependencies=[Depends(require_cron_secret)])
async def digest_test(
    email: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    """Send the daily snapshot now, to everyone or just ``email``."""
    result = await run_digest_test(session, email)
    if email and result.total_users == 0:
        raise NotFoundError("User not found", detail={"email": email})

    return {
        "message": "Test digest completed",
        "totalUsers": result.total_users,
        "emailsSent": len(result.successful),
        "emailsFailed": len(result.failed),
        "results": {
            "successful": result.successful,
            "failed": result.failed,
        },
        "timestamp": datetime.utcnow().isoformat(),
    }
