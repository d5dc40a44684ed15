from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from exceptions import NotFoundError, ValidationError
from models import ALL_TEAM_CHAT_TYPE, Chat, Message, MessageFile, MessageReaction, Profile
from repositories.base import Repository
from schemas import MessageFileCreate, MessageFileRead, MessageRead, ReactionRead

RECENT_MESSAGE_LIMIT = 50


class ChatRepository(Repository):
    async def get_or_create_all_chat(self) -> Chat:
        """Return the team-wide chat, creating it on first use."""
        result = await self.session.exec(select(Chat).where(Chat.type == ALL_TEAM_CHAT_TYPE))
        chat = result.first()
        if chat:
            return chat

        chat = Chat(type=ALL_TEAM_CHAT_TYPE, name="All Team")
        self.session.add(chat)
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request created it first
            await self.session.rollback()
            result = await self.session.exec(select(Chat).where(Chat.type == ALL_TEAM_CHAT_TYPE))
            return result.one()
        await self.session.refresh(chat)
        return chat

    async def get_chat(self, chat_id: int) -> Chat:
        chat = await self.session.get(Chat, chat_id)
        if not chat:
            raise NotFoundError("Chat not found")
        return chat

    async def get_message_row(self, message_id: int) -> Message:
        message = await self.session.get(Message, message_id)
        if not message:
            raise NotFoundError("Message not found")
        return message

    async def recent_messages(self, chat_id: int, limit: int = RECENT_MESSAGE_LIMIT) -> List[MessageRead]:
        """Latest ``limit`` messages, oldest first."""
        result = await self.session.exec(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        messages = list(reversed(result.all()))
        return await self._views(messages)

    async def get_message(self, message_id: int) -> MessageRead:
        message = await self.get_message_row(message_id)
        views = await self._views([message])
        return views[0]

    async def send_message(
        self, chat_id: int, sender_id: int, content: Optional[str], reply_to: Optional[int] = None
    ) -> Message:
        if not content or not content.strip():
            raise ValidationError("Chat ID and content are required")
        await self.get_chat(chat_id)

        if reply_to is not None:
            parent = await self.session.get(Message, reply_to)
            if not parent or parent.chat_id != chat_id:
                raise NotFoundError("Reply target not found")

        message = Message(
            chat_id=chat_id,
            sender_id=sender_id,
            content=content.strip(),
            reply_to=reply_to,
        )
        return await self.save(message, "Failed to send message")

    async def soft_delete_message(self, message_id: int, caller_id: int) -> Message:
        message = await self.session.get(Message, message_id)
        if not message or message.sender_id != caller_id:
            raise NotFoundError("Message not found")
        message.is_deleted = True
        message.updated_at = datetime.utcnow()
        return await self.save(message, "Failed to delete message")

    async def add_file(self, message_id: int, data: MessageFileCreate, caller_id: int) -> MessageFile:
        message = await self.session.get(Message, message_id)
        if not message or message.sender_id != caller_id:
            raise NotFoundError("Message not found")
        row = MessageFile(
            message_id=message.id,
            file_name=data.file_name,
            file_size=data.file_size,
            file_type=data.file_type,
            storage_path=data.storage_path,
        )
        return await self.save(row, "Failed to attach file")

    async def get_file(self, file_id: int) -> MessageFile:
        row = await self.session.get(MessageFile, file_id)
        if not row:
            raise NotFoundError("File not found")
        return row

    async def list_reactions(self, message_id: int) -> List[MessageReaction]:
        result = await self.session.exec(
            select(MessageReaction)
            .where(MessageReaction.message_id == message_id)
            .order_by(MessageReaction.created_at, MessageReaction.id)
        )
        return list(result.all())

    async def add_reaction(self, message_id: int, user_id: int, reaction: str) -> MessageReaction:
        """Insert a reaction; an existing (message, user, emoji) row is returned as-is."""
        if not reaction or not reaction.strip():
            raise ValidationError("Reaction is required")
        await self.get_message_row(message_id)

        existing = await self._find_reaction(message_id, user_id, reaction)
        if existing:
            return existing

        row = MessageReaction(message_id=message_id, user_id=user_id, reaction=reaction)
        self.session.add(row)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            existing = await self._find_reaction(message_id, user_id, reaction)
            if existing is None:
                raise
            return existing
        await self.session.refresh(row)
        return row

    async def remove_reaction(self, reaction_id: int, caller_id: int) -> MessageReaction:
        row = await self.session.get(MessageReaction, reaction_id)
        if not row or row.user_id != caller_id:
            raise NotFoundError("Reaction not found")
        await self.session.delete(row)
        await self.commit("Failed to remove reaction")
        return row

    async def _find_reaction(self, message_id: int, user_id: int, reaction: str) -> Optional[MessageReaction]:
        result = await self.session.exec(
            select(MessageReaction).where(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
                MessageReaction.reaction == reaction,
            )
        )
        return result.first()

    async def _views(self, messages: Sequence[Message]) -> List[MessageRead]:
        """Attach files, reactions and sender names to a batch of messages."""
        if not messages:
            return []
        ids = [m.id for m in messages]
        sender_ids = {m.sender_id for m in messages}

        files: Dict[int, List[MessageFileRead]] = defaultdict(list)
        result = await self.session.exec(
            select(MessageFile).where(MessageFile.message_id.in_(ids)).order_by(MessageFile.id)
        )
        for f in result.all():
            files[f.message_id].append(MessageFileRead.model_validate(f))

        reactions: Dict[int, List[ReactionRead]] = defaultdict(list)
        result = await self.session.exec(
            select(MessageReaction)
            .where(MessageReaction.message_id.in_(ids))
            .order_by(MessageReaction.created_at, MessageReaction.id)
        )
        for r in result.all():
            reactions[r.message_id].append(ReactionRead.model_validate(r))

        result = await self.session.exec(select(Profile).where(Profile.id.in_(sender_ids)))
        names = {p.id: p.display_name for p in result.all()}

        return [
            MessageRead(
                id=m.id,
                chat_id=m.chat_id,
                sender_id=m.sender_id,
                sender_name=names.get(m.sender_id, "User"),
                content="" if m.is_deleted else m.content,
                reply_to=m.reply_to,
                is_deleted=m.is_deleted,
                created_at=m.created_at,
                updated_at=m.updated_at,
                files=[] if m.is_deleted else files.get(m.id, []),
                reactions=reactions.get(m.id, []),
            )
            for m in messages
        ]
