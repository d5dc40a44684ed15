"""Task comments."""

from typing import Optional
from datetime import datetime
from sqlmodel import Field, SQLModel


class Comment(SQLModel, table=True):
    """Comment on a task. Immutable apart from deletion."""
    __tablename__ = "comment"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="task.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="profile.id", index=True)
    author: str
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
