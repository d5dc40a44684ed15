"""
Wire DTOs.

Rows are snake_case (models/), the JSON surface is camelCase. Each entity
has one Create/Update/Read trio here and that is the only place the two
shapes meet: Read models are built with ``model_validate(row)`` and Update
models hand back column names through ``to_row_fields()``.
"""

from datetime import date, datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel

Visibility = Literal["private", "specific", "all"]
Priority = Literal["High", "Medium", "Low"]
Status = Literal["Backlog", "In Progress", "Code Review", "Testing", "Done"]
NotificationType = Literal["chat_message", "task_assigned", "task_updated", "comment_added"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PartialUpdate(CamelModel):
    # Columns that cannot hold NULL; an explicit null is treated as "not sent"
    non_nullable: ClassVar[Tuple[str, ...]] = ()

    def to_row_fields(self) -> Dict[str, Any]:
        fields = self.model_dump(exclude_unset=True)
        return {
            k: v for k, v in fields.items()
            if not (v is None and k in self.non_nullable)
        }


# ============== PROJECTS ==============

class ProjectCreate(CamelModel):
    name: Optional[str] = None
    visibility: Optional[Visibility] = None
    shared_with: Optional[List[int]] = None
    billed: Optional[bool] = None
    billed_date: Optional[date] = None


class ProjectUpdate(PartialUpdate):
    non_nullable = ("visibility", "shared_with", "billed")

    name: Optional[str] = None
    visibility: Optional[Visibility] = None
    shared_with: Optional[List[int]] = None
    billed: Optional[bool] = None
    billed_date: Optional[date] = None


class ProjectRead(CamelModel):
    id: int
    user_id: int
    name: str
    visibility: str
    shared_with: List[int] = []
    billed: bool = False
    billed_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


# ============== TASKS ==============

class TaskCreate(CamelModel):
    project_id: Optional[int] = None
    feature_task: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    notes: Optional[str] = None
    visibility: Optional[Visibility] = None
    shared_with: Optional[List[int]] = None
    billed: Optional[bool] = None
    billed_date: Optional[date] = None


class TaskUpdate(PartialUpdate):
    non_nullable = ("priority", "status", "done", "visibility", "shared_with", "billed")

    feature_task: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    done: Optional[bool] = None
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    notes: Optional[str] = None
    visibility: Optional[Visibility] = None
    shared_with: Optional[List[int]] = None
    billed: Optional[bool] = None
    billed_date: Optional[date] = None


class TaskRead(CamelModel):
    id: int
    project_id: int
    user_id: int
    done: bool
    feature_task: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: str
    status: str
    start_date: Optional[date] = None
    target_date: Optional[date] = None
    notes: Optional[str] = None
    visibility: str
    shared_with: List[int] = []
    billed: bool = False
    billed_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


# ============== TEAM ==============

class TeamMemberCreate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class TeamMemberUpdate(PartialUpdate):
    non_nullable = ("name", "email", "role")

    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class TeamMemberRead(CamelModel):
    id: int
    name: str
    email: str
    role: str
    created_at: datetime
    updated_at: datetime


class InviteRequest(CamelModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    role: Optional[str] = None


class InvitationRead(CamelModel):
    email: str
    name: str
    role: str
    expires_at: datetime


# ============== COMMENTS ==============

class CommentCreate(CamelModel):
    task_id: Optional[int] = None
    content: Optional[str] = None
    author: Optional[str] = None


class CommentRead(CamelModel):
    id: int
    task_id: int
    user_id: Optional[int] = None
    author: str
    content: str
    created_at: datetime


# ============== CHAT ==============

class MessageSendRequest(CamelModel):
    chat_id: Optional[int] = None
    content: Optional[str] = None
    reply_to: Optional[int] = None


class MessageFileCreate(CamelModel):
    file_name: str
    file_size: int = 0
    file_type: Optional[str] = None
    storage_path: Optional[str] = None


class MessageFileRead(CamelModel):
    id: int
    message_id: int
    file_name: str
    file_size: int
    file_type: Optional[str] = None
    storage_path: str
    created_at: datetime


class ReactionCreate(CamelModel):
    reaction: str


class ReactionRead(CamelModel):
    id: int
    message_id: int
    user_id: int
    reaction: str
    created_at: datetime


class MessageRead(CamelModel):
    id: int
    chat_id: int
    sender_id: int
    sender_name: Optional[str] = None
    content: str
    reply_to: Optional[int] = None
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime
    files: List[MessageFileRead] = []
    reactions: List[ReactionRead] = []


class ChatRead(CamelModel):
    chat_id: int
    messages: List[MessageRead]


class SignedUrlRead(CamelModel):
    url: str
    expires_at: datetime


# ============== NOTIFICATIONS ==============

class NotificationRead(CamelModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    read: bool
    metadata: Dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "NotificationRead":
        return cls(
            id=row.id,
            user_id=row.user_id,
            type=row.type,
            title=row.title,
            message=row.message,
            link=row.link,
            read=row.read,
            metadata=row.meta or {},
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


# ============== AUTH / USERS ==============

class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class SignupRequest(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None


class SetupPasswordRequest(CamelModel):
    token: Optional[str] = None
    password: Optional[str] = None


class UserRead(CamelModel):
    id: int
    email: str
    name: Optional[str] = None


class SessionRead(CamelModel):
    access_token: str
    expires_at: datetime


class AuthResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    user: UserRead
    session: SessionRead


class CurrentUserRead(CamelModel):
    id: int
    email: str


class ProfileRead(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    created_at: datetime


class UsersResponse(CamelModel):
    current_user: CurrentUserRead
    all_profiles: List[ProfileRead]


# ============== STATS ==============

class ProjectStats(CamelModel):
    total: int
    completed: int
    in_progress: int
    backlog: int
    percent_complete: int
