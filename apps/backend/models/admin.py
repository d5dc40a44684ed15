"""In-app notifications."""

from typing import Any, Dict, Optional
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class Notification(SQLModel, table=True):
    """
    In-app notification for one recipient.
    Written by the fanout side effects; read/deleted by the recipient.
    """
    __tablename__ = "notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="profile.id", index=True)

    # chat_message | task_assigned | task_updated | comment_added
    type: str = Field(index=True)

    title: str
    message: str
    link: Optional[str] = None  # Deep link for click-through

    read: bool = False
    read_at: Optional[datetime] = None

    # "metadata" is reserved on declarative classes
    meta: Dict[str, Any] = Field(default_factory=dict, sa_column=sa.Column("metadata", sa.JSON, nullable=False))

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
