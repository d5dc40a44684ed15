"""
Client-side reconciliation for the team chat.

``ChatSync`` keeps the local message list in step with the server. A message
can reach the list twice, once from our own send and once from the change
feed echo, so every write to the list goes through ``merge_message``, which
replaces by id instead of appending. The list is rebuilt and assigned in one
step so an observer never sees a half-applied merge.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, List, Optional

import httpx

from chat_client.api import ChatApiClient, ChatApiError
from schemas import MessageRead, ReactionRead
from services.realtime import (
    TABLE_MESSAGE_FILES,
    TABLE_MESSAGE_REACTIONS,
    TABLE_MESSAGES,
    ChangeEvent,
)

logger = logging.getLogger("chat_client")


class ChatState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


@dataclass
class PendingFile:
    file_name: str
    file_size: int = 0
    file_type: Optional[str] = None


class ChatSync:
    def __init__(self, api: ChatApiClient, user_id: int):
        self.api = api
        self.user_id = user_id
        self.state = ChatState.UNINITIALIZED
        self.chat_id: Optional[int] = None
        self.messages: List[MessageRead] = []

        # Composer state, restored when a send fails
        self.input_text = ""
        self.reply_to: Optional[int] = None
        self.pending_files: List[PendingFile] = []

    async def initialize(self) -> None:
        self.state = ChatState.LOADING
        try:
            chat = await self.api.get_chat()
        except Exception:
            self.state = ChatState.UNINITIALIZED
            raise
        self.chat_id = chat.chat_id
        self.messages = list(chat.messages)
        self.state = ChatState.READY
        logger.info(f"[CHAT] Ready with {len(self.messages)} message(s) in chat {self.chat_id}")

    def find(self, message_id: int) -> Optional[MessageRead]:
        return next((m for m in self.messages if m.id == message_id), None)

    def sender_label(self, message: MessageRead) -> str:
        return "You" if message.sender_id == self.user_id else (message.sender_name or "User")

    def merge_message(self, message: MessageRead) -> None:
        """Replace the message with the same id in place, or append it."""
        if any(m.id == message.id for m in self.messages):
            self.messages = [message if m.id == message.id else m for m in self.messages]
        else:
            self.messages = [*self.messages, message]

    def replace_reactions(self, message_id: int, reactions: List[ReactionRead]) -> None:
        self.messages = [
            m.model_copy(update={"reactions": list(reactions)}) if m.id == message_id else m
            for m in self.messages
        ]

    async def handle_event(self, event: ChangeEvent) -> None:
        if self.state != ChatState.READY or event.chat_id != self.chat_id:
            return

        record = event.record or {}
        if event.table == TABLE_MESSAGES and event.type in ("INSERT", "UPDATE"):
            self.merge_message(await self.api.get_message(record["id"]))

        elif event.table == TABLE_MESSAGE_FILES and event.type == "INSERT":
            # The file row usually lands after its message; refetch the parent whole
            self.merge_message(await self.api.get_message(record["messageId"]))

        elif event.table == TABLE_MESSAGE_REACTIONS:
            message_id = record["messageId"]
            if self.find(message_id) is None:
                return
            self.replace_reactions(message_id, await self.api.list_reactions(message_id))

    async def send(self, content: Optional[str] = None) -> Optional[MessageRead]:
        """
        Send the composer contents.

        The composer is cleared before the request goes out; if the POST
        fails, the text, reply target and pending files are put back and the
        error is re-raised.
        """
        text = self.input_text if content is None else content
        if self.chat_id is None or not text.strip():
            return None

        reply_to, files = self.reply_to, self.pending_files
        self.input_text, self.reply_to, self.pending_files = "", None, []

        try:
            message = await self.api.send_message(self.chat_id, text, reply_to=reply_to)
        except (ChatApiError, httpx.HTTPError):
            self.input_text, self.reply_to, self.pending_files = text, reply_to, files
            raise

        if files:
            for f in files:
                try:
                    await self.api.attach_file(message.id, f.file_name, f.file_size, f.file_type)
                except (ChatApiError, httpx.HTTPError) as e:
                    logger.error(f"[CHAT] Attaching {f.file_name} to message {message.id} failed: {e}")
            message = await self.api.get_message(message.id)

        self.merge_message(message)
        return message

    async def toggle_reaction(self, message_id: int, emoji: str) -> List[ReactionRead]:
        """Remove the caller's (message, emoji) reaction if present, otherwise add it."""
        message = self.find(message_id)
        existing = None
        if message is not None:
            existing = next(
                (r for r in message.reactions if r.user_id == self.user_id and r.reaction == emoji),
                None,
            )

        if existing:
            await self.api.remove_reaction(existing.id)
        else:
            await self.api.add_reaction(message_id, emoji)

        reactions = await self.api.list_reactions(message_id)
        self.replace_reactions(message_id, reactions)
        return reactions

    async def listen(self, events: Optional[AsyncIterable[ChangeEvent]] = None) -> None:
        """Apply change events until the feed ends."""
        if self.chat_id is None:
            raise RuntimeError("ChatSync.initialize() must run before listen()")
        source = events if events is not None else self.api.stream_events(self.chat_id)
        async for event in source:
            try:
                await self.handle_event(event)
            except ChatApiError as e:
                logger.warning(f"[CHAT] Could not apply {event.table}/{event.type}: {e.message}")
            except (httpx.HTTPError, KeyError) as e:
                logger.warning(f"[CHAT] Could not apply {event.table}/{event.type}: {e!r}")
