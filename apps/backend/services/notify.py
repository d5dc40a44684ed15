"""Notification trigger service.

Centralizes notification fanout so routes only schedule a trigger after
their write commits. Each trigger takes a session plus plain ids, reloads
what it needs, stages notification rows and leaves the commit to the
side-effect runner. Emails are separate triggers so a delivery problem
cannot take the in-app notification down with it.
"""

import logging
from typing import Optional, Tuple

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from models import Comment, Message, Profile, Project, Task
from repositories import NotificationRepository, ProfileRepository
from services import email as email_service
from services.side_effects import SideEffects

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 100


def _excerpt(text: str) -> str:
    return text if len(text) <= EXCERPT_LENGTH else text[:EXCERPT_LENGTH - 3] + "..."


async def _display_name(session: AsyncSession, profile_id: Optional[int]) -> Optional[str]:
    if profile_id is None:
        return None
    profile = await session.get(Profile, profile_id)
    return profile.display_name if profile else None


async def _task_assignee(session: AsyncSession, task_id: int) -> Tuple[Optional[Task], Optional[Profile], Optional[Project]]:
    task = await session.get(Task, task_id)
    if not task or not task.assigned_to:
        return task, None, None
    assignee = await ProfileRepository(session).find_by_assignee(task.assigned_to)
    project = await session.get(Project, task.project_id)
    return task, assignee, project


async def notify_task_assigned(session: AsyncSession, task_id: int, assigned_by: Optional[int] = None) -> int:
    """
    Tell the assignee of a task that it is theirs.
    Skips silently when the assignee text matches no profile.
    Returns count of notifications staged.
    """
    task, assignee, project = await _task_assignee(session, task_id)
    if not task or not task.assigned_to:
        return 0
    if not assignee:
        logger.info(f"[Notify] No profile matches assignee '{task.assigned_to}' for task {task_id}")
        return 0

    project_name = project.name if project else "a project"
    by = await _display_name(session, assigned_by) or "Someone"

    await NotificationRepository(session).create(
        user_id=assignee.id,
        type="task_assigned",
        title=f"New task assigned: {task.feature_task}",
        message=f"{by} assigned you \"{task.feature_task}\" in {project_name}",
        link=f"/projects/{task.project_id}",
        metadata={
            "taskId": task.id,
            "projectId": task.project_id,
            "projectName": project_name,
            "assignedBy": assigned_by,
        },
    )
    logger.info(f"[Notify] task_assigned -> user {assignee.id} for task {task.id}")
    return 1


async def notify_task_reassigned(
    session: AsyncSession,
    task_id: int,
    previous_assignee: Optional[str],
    assigned_by: Optional[int] = None,
) -> int:
    task = await session.get(Task, task_id)
    if task:
        logger.info(f"[Notify] Task {task_id} reassigned: '{previous_assignee or ''}' -> '{task.assigned_to or ''}'")
    return await notify_task_assigned(session, task_id, assigned_by)


async def email_task_assigned(session: AsyncSession, task_id: int, assigned_by: Optional[int] = None) -> bool:
    task, assignee, project = await _task_assignee(session, task_id)
    if not task or not assignee:
        return False

    result = await email_service.send_task_assignment_email(
        to_email=assignee.email,
        assignee_name=assignee.display_name,
        task_title=task.feature_task,
        project_name=project.name if project else "a project",
        project_id=task.project_id,
        assigned_by=await _display_name(session, assigned_by),
    )
    if not result.success:
        logger.warning(f"[Notify] Assignment email for task {task_id} failed: {result.error}")
    return result.success


async def _comment_recipient(session: AsyncSession, comment_id: int, commenter_id: Optional[int]):
    comment = await session.get(Comment, comment_id)
    if not comment:
        return None, None, None
    task, assignee, _ = await _task_assignee(session, comment.task_id)
    if not task or not assignee:
        return comment, task, None
    if assignee.id == commenter_id:
        # Commenting on your own task
        return comment, task, None
    return comment, task, assignee


async def notify_comment_added(session: AsyncSession, comment_id: int, commenter_id: Optional[int] = None) -> int:
    """Notify the task's assignee about a new comment, unless they wrote it."""
    comment, task, recipient = await _comment_recipient(session, comment_id, commenter_id)
    if not recipient:
        return 0

    await NotificationRepository(session).create(
        user_id=recipient.id,
        type="comment_added",
        title=f"New comment on: {task.feature_task}",
        message=f"{comment.author}: {_excerpt(comment.content)}",
        link=f"/projects/{task.project_id}",
        metadata={"taskId": task.id, "commentId": comment.id, "projectId": task.project_id},
    )
    logger.info(f"[Notify] comment_added -> user {recipient.id} for task {task.id}")
    return 1


async def email_comment_added(session: AsyncSession, comment_id: int, commenter_id: Optional[int] = None) -> bool:
    comment, task, recipient = await _comment_recipient(session, comment_id, commenter_id)
    if not recipient:
        return False

    result = await email_service.send_task_comment_email(
        to_email=recipient.email,
        recipient_name=recipient.display_name,
        task_title=task.feature_task,
        commenter=comment.author,
        comment=comment.content,
        project_id=task.project_id,
    )
    if not result.success:
        logger.warning(f"[Notify] Comment email for comment {comment_id} failed: {result.error}")
    return result.success


async def notify_chat_message(session: AsyncSession, message_id: int) -> int:
    """One chat_message notification for every profile except the sender."""
    message = await session.get(Message, message_id)
    if not message:
        return 0

    sender_name = await _display_name(session, message.sender_id) or "Someone"
    result = await session.exec(select(Profile).where(Profile.id != message.sender_id))
    recipients = result.all()

    notifications = NotificationRepository(session)
    for profile in recipients:
        await notifications.create(
            user_id=profile.id,
            type="chat_message",
            title=f"New message from {sender_name}",
            message=_excerpt(message.content),
            link="/chat",
            metadata={"chatId": message.chat_id, "messageId": message.id, "senderId": message.sender_id},
        )

    logger.info(f"[Notify] chat_message {message.id} fanned out to {len(recipients)} user(s)")
    return len(recipients)


def schedule_task_assignment(
    effects: SideEffects,
    task_id: int,
    assigned_by: Optional[int],
    previous_assignee: Optional[str] = None,
    reassigned: bool = False,
) -> None:
    if reassigned:
        effects.schedule("notify_task_reassigned", notify_task_reassigned, task_id, previous_assignee, assigned_by)
    else:
        effects.schedule("notify_task_assigned", notify_task_assigned, task_id, assigned_by)
    effects.schedule("email_task_assigned", email_task_assigned, task_id, assigned_by)


def schedule_comment_added(effects: SideEffects, comment_id: int, commenter_id: Optional[int]) -> None:
    effects.schedule("notify_comment_added", notify_comment_added, comment_id, commenter_id)
    effects.schedule("email_comment_added", email_comment_added, comment_id, commenter_id)
