"""Project and Task models."""

from typing import List, Optional
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class Project(SQLModel, table=True):
    __tablename__ = "project"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="profile.id", index=True)
    name: str

    # private | specific | all
    visibility: str = Field(default="private")
    shared_with: List[int] = Field(default_factory=list, sa_column=sa.Column(sa.JSON, nullable=False))

    billed: bool = False
    billed_date: Optional[date] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Task(SQLModel, table=True):
    """
    A unit of work under a project.

    ``assigned_to`` is a free-text display name, resolved to a profile by
    name or email when notifications go out.
    """
    __tablename__ = "task"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", index=True)
    user_id: int = Field(foreign_key="profile.id", index=True)

    feature_task: str
    description: Optional[str] = None
    assigned_to: Optional[str] = Field(default=None, index=True)
    priority: str = "Medium"
    status: str = Field(default="Backlog", index=True)
    done: bool = False

    start_date: Optional[date] = None
    target_date: Optional[date] = None
    notes: Optional[str] = None

    visibility: str = Field(default="private")
    shared_with: List[int] = Field(default_factory=list, sa_column=sa.Column(sa.JSON, nullable=False))

    billed: bool = False
    billed_date: Optional[date] = None

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)
