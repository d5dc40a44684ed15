"""Data access per entity. Each repository wraps one request-scoped AsyncSession."""

from repositories.projects import ProjectRepository
from repositories.tasks import TaskRepository
from repositories.team import TeamMemberRepository
from repositories.comments import CommentRepository
from repositories.profiles import ProfileRepository
from repositories.invitations import InvitationRepository
from repositories.chat import ChatRepository
from repositories.notifications import NotificationRepository

__all__ = [
    "ProjectRepository",
    "TaskRepository",
    "TeamMemberRepository",
    "CommentRepository",
    "ProfileRepository",
    "InvitationRepository",
    "ChatRepository",
    "NotificationRepository",
]
