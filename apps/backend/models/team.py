"""Team roster and invitation models."""

from typing import Optional
from datetime import datetime, timedelta
import os

from sqlmodel import Field, SQLModel

INVITATION_TTL_DAYS = int(os.getenv("INVITATION_TTL_DAYS", "7"))


def invitation_expiry() -> datetime:
    return datetime.utcnow() + timedelta(days=INVITATION_TTL_DAYS)


class TeamMember(SQLModel, table=True):
    """Local roster entry. Independent of authenticated profiles."""
    __tablename__ = "team_member"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = ""
    role: str = "Developer"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class UserInvitation(SQLModel, table=True):
    """Pending invitation; consumed once when the invitee sets a password."""
    __tablename__ = "user_invitation"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str
    role: str = "member"
    token: str = Field(index=True, unique=True)
    expires_at: datetime = Field(default_factory=invitation_expiry)
    accepted: bool = False
    invited_by: Optional[int] = Field(default=None, foreign_key="profile.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_expired(self) -> bool:
        return self.expires_at < datetime.utcnow()
