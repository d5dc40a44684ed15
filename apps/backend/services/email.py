"""
Email service for invitations, task activity and digests.
Uses Resend for transactional email delivery.

Without RESEND_API_KEY every send runs in demo mode: the email is logged
and reported as delivered. Send functions never raise; callers inspect
the returned EmailResult.
"""
import asyncio
import os
from dataclasses import dataclass
from html import escape
from typing import List, Optional

import resend

from observability.logging import get_logger
from observability.metrics import emails_sent_total

logger = get_logger(__name__)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "Dev Tracker <onboarding@resend.dev>")

# Base URL for links in emails
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")


def _api_key() -> Optional[str]:
    return os.getenv("RESEND_API_KEY")


def get_setup_password_url(token: str) -> str:
    return f"{APP_BASE_URL}/auth/setup-password/{token}"


def get_project_url(project_id: int) -> str:
    return f"{APP_BASE_URL}/projects/{project_id}"


def _layout(title: str, body: str) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>{title}</h2>
        {body}
        <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
        <p style="color: #999; font-size: 12px;">Dev Tracker</p>
    </body>
    </html>
    """


def _button(url: str, label: str) -> str:
    return f"""
        <p style="text-align: center; margin: 30px 0;">
            <a href="{url}"
               style="background: #2563eb; color: white; padding: 12px 24px;
                      text-decoration: none; border-radius: 6px; font-weight: bold;">
                {label}
            </a>
        </p>
    """


async def _send(kind: str, to: List[str], subject: str, html_content: str, text_content: Optional[str] = None) -> EmailResult:
    api_key = _api_key()
    if api_key:
        resend.api_key = api_key
        try:
            params: resend.Emails.SendParams = {
                "from": FROM_EMAIL,
                "to": to,
                "subject": subject,
                "html": html_content,
            }
            if text_content:
                params["text"] = text_content
            response = await asyncio.to_thread(resend.Emails.send, params)
            emails_sent_total.labels(kind=kind, outcome="sent").inc()
            return EmailResult(success=True, message_id=response.get("id"))
        except Exception as e:
            emails_sent_total.labels(kind=kind, outcome="failed").inc()
            logger.error(f"[RESEND ERROR] {kind} to {to}: {e}")
            return EmailResult(success=False, error=str(e))

    # Demo mode: log email instead
    emails_sent_total.labels(kind=kind, outcome="demo").inc()
    logger.info(f"[DEMO EMAIL] {kind} to {', '.join(to)}: {subject}")
    return EmailResult(success=True, message_id=f"demo-{kind}")


async def send_invitation_email(
    to_email: str,
    name: str,
    token: str,
    role: str = "member",
    invited_by: Optional[str] = None,
) -> EmailResult:
    url = get_setup_password_url(token)
    inviter = escape(invited_by) if invited_by else "Your team"
    subject = f"You've been invited to join {invited_by or 'A team member'}'s team on Dev Tracker"
    body = f"""
        <p>Hi {escape(name)},</p>
        <p>{inviter} invited you to join Dev Tracker as <strong>{escape(role)}</strong>.</p>
        <p>Set a password to activate your account:</p>
        {_button(url, "Set up your account")}
        <p style="color: #666; font-size: 14px;">This link expires in 7 days.</p>
    """
    text = f"Hi {name},\n\n{invited_by or 'Your team'} invited you to Dev Tracker.\nSet your password: {url}\n\nThis link expires in 7 days."
    return await _send("invitation", [to_email], subject, _layout("You're invited", body), text)


async def send_task_assignment_email(
    to_email: str,
    assignee_name: str,
    task_title: str,
    project_name: str,
    project_id: int,
    assigned_by: Optional[str] = None,
) -> EmailResult:
    subject = f"New task assigned: {task_title}"
    by = f" by {escape(assigned_by)}" if assigned_by else ""
    body = f"""
        <p>Hi {escape(assignee_name)},</p>
        <p>You were assigned <strong>{escape(task_title)}</strong> in {escape(project_name)}{by}.</p>
        {_button(get_project_url(project_id), "Open project")}
    """
    return await _send("task_assigned", [to_email], subject, _layout("New task assigned", body))


async def send_task_comment_email(
    to_email: str,
    recipient_name: str,
    task_title: str,
    commenter: str,
    comment: str,
    project_id: int,
) -> EmailResult:
    subject = f"New comment on: {task_title}"
    excerpt = comment if len(comment) <= 300 else comment[:297] + "..."
    body = f"""
        <p>Hi {escape(recipient_name)},</p>
        <p>{escape(commenter)} commented on <strong>{escape(task_title)}</strong>:</p>
        <blockquote style="border-left: 3px solid #ddd; padding-left: 12px; color: #444;">{escape(excerpt)}</blockquote>
        {_button(get_project_url(project_id), "View task")}
    """
    return await _send("comment_added", [to_email], subject, _layout("New comment", body))


async def send_daily_snapshot_email(to_email: str, snapshot) -> EmailResult:
    """``snapshot`` is a services.digest.DailySnapshot."""
    subject = f"Your daily snapshot: {snapshot.total_count} open task(s)"
    rows = "".join(
        f"<li>{escape(t.feature_task)} ({escape(t.status)}"
        f"{', due ' + t.target_date.isoformat() if t.target_date else ''})</li>"
        for t in snapshot.tasks
    )
    body = f"""
        <p>Hi {escape(snapshot.user_name)},</p>
        <p>
            Overdue: <strong>{snapshot.overdue_count}</strong> &middot;
            Due today: <strong>{snapshot.due_today_count}</strong> &middot;
            In progress: <strong>{snapshot.in_progress_count}</strong>
        </p>
        <ul>{rows}</ul>
        {_button(APP_BASE_URL, "Open Dev Tracker")}
    """
    return await _send("daily_snapshot", [to_email], subject, _layout("Daily snapshot", body))


async def send_weekly_report_email(to_email: str, recipient_name: str, report) -> EmailResult:
    """``report`` is a services.digest.WeeklyReport."""
    week = f"{report.week_start.date().isoformat()} to {report.week_end.date().isoformat()}"
    subject = f"Weekly team report ({week})"
    rows = "".join(
        f"<tr><td>{escape(a.user_name)}</td><td>{a.tasks_created}</td><td>{a.tasks_completed}</td>"
        f"<td>{a.comments_added}</td><td>{a.projects_created}</td></tr>"
        for a in report.activities
    )
    totals = report.totals
    body = f"""
        <p>Hi {escape(recipient_name)},</p>
        <p>Team activity for {week}:
           {totals['tasks_created']} tasks created, {totals['tasks_completed']} completed,
           {totals['comments_added']} comments, {totals['projects_created']} new projects.</p>
        <table cellpadding="6" style="border-collapse: collapse;">
            <tr><th>Member</th><th>Created</th><th>Completed</th><th>Comments</th><th>Projects</th></tr>
            {rows}
        </table>
    """
    return await _send("weekly_report", [to_email], subject, _layout("Weekly report", body))


async def send_welcome_email(to_email: str, name: Optional[str]) -> EmailResult:
    body = f"""
        <p>Hi {escape(name or to_email.split('@')[0])},</p>
        <p>Your Dev Tracker account is ready.</p>
        {_button(APP_BASE_URL, "Get started")}
    """
    return await _send("welcome", [to_email], "Welcome to Dev Tracker", _layout("Welcome!", body))


async def send_admin_signup_notification(new_user_email: str, name: Optional[str]) -> EmailResult:
    admin_email = os.getenv("ADMIN_EMAIL")
    if not admin_email:
        return EmailResult(success=False, error="ADMIN_EMAIL not configured")
    body = f"<p>{escape(name or '(no name)')} &lt;{escape(new_user_email)}&gt; just signed up.</p>"
    return await _send("admin_signup", [admin_email], f"New signup: {new_user_email}", _layout("New user", body))
