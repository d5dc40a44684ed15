"""
Model exports.

Models are organized into domain modules:
- auth.py: profiles, password identities, sessions and audit log
- projects.py: projects and tasks
- team.py: team roster and invitations
- social.py: task comments
- chat.py: chat, messages, attachments and reactions
- admin.py: notifications
"""

from models.auth import (
    Profile,
    AuthIdentity,
    AuthSession,
    AuditLog,
    hash_token,
    hash_password,
    verify_password,
    generate_session_token,
    generate_invitation_token,
)

from models.projects import (
    Project,
    Task,
)

from models.team import (
    TeamMember,
    UserInvitation,
)

from models.social import (
    Comment,
)

from models.chat import (
    Chat,
    Message,
    MessageFile,
    MessageReaction,
    ALL_TEAM_CHAT_TYPE,
)

from models.admin import (
    Notification,
)

__all__ = [
    # Auth
    "Profile",
    "AuthIdentity",
    "AuthSession",
    "AuditLog",
    "hash_token",
    "hash_password",
    "verify_password",
    "generate_session_token",
    "generate_invitation_token",
    # Projects
    "Project",
    "Task",
    # Team
    "TeamMember",
    "UserInvitation",
    # Social
    "Comment",
    # Chat
    "Chat",
    "Message",
    "MessageFile",
    "MessageReaction",
    "ALL_TEAM_CHAT_TYPE",
    # Admin
    "Notification",
]
