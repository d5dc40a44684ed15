"""Team chat models: the well-known chat, its messages, attachments and reactions."""

from typing import Optional
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

ALL_TEAM_CHAT_TYPE = "all"


class Chat(SQLModel, table=True):
    """Conversation keyed by a type discriminator; ``all`` is the team-wide singleton."""
    __tablename__ = "chat"

    id: Optional[int] = Field(default=None, primary_key=True)
    type: str = Field(sa_column=sa.Column(sa.String, unique=True, nullable=False))
    name: str = "All Team"
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Message(SQLModel, table=True):
    __tablename__ = "message"

    id: Optional[int] = Field(default=None, primary_key=True)
    chat_id: int = Field(foreign_key="chat.id", index=True)
    sender_id: int = Field(foreign_key="profile.id", index=True)
    content: str
    reply_to: Optional[int] = Field(default=None, foreign_key="message.id")
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MessageFile(SQLModel, table=True):
    """Attachment metadata; the bytes live in storage under ``storage_path``."""
    __tablename__ = "message_file"

    id: Optional[int] = Field(default=None, primary_key=True)
    message_id: int = Field(foreign_key="message.id", index=True)
    file_name: str
    file_size: int = 0
    file_type: Optional[str] = None
    storage_path: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MessageReaction(SQLModel, table=True):
    """One emoji per (message, user); toggled on and off."""
    __tablename__ = "message_reaction"
    __table_args__ = (
        sa.UniqueConstraint("message_id", "user_id", "reaction", name="uq_message_reaction"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    message_id: int = Field(foreign_key="message.id", index=True)
    user_id: int = Field(foreign_key="profile.id", index=True)
    reaction: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
