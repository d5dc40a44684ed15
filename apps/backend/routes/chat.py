"""Team chat routes - messages, attachments, reactions and the change feed."""
import asyncio
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from database import get_session
from dependencies import require_user
from exceptions import ValidationError
from models import Profile
from observability.logging import get_logger
from observability.metrics import business_events_total
from repositories import ChatRepository
from schemas import (
    ChatRead,
    MessageFileCreate,
    MessageFileRead,
    MessageRead,
    MessageSendRequest,
    ReactionCreate,
    ReactionRead,
    SignedUrlRead,
)
from services.notify import notify_chat_message
from services.realtime import (
    TABLE_MESSAGE_FILES,
    TABLE_MESSAGE_REACTIONS,
    TABLE_MESSAGES,
    ChangeBroker,
    ChangeEvent,
    get_broker,
)
from services.side_effects import SideEffects, get_side_effects
from storage import build_storage_path, create_signed_url

logger = get_logger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

KEEPALIVE_SECONDS = 15.0


@router.get("", response_model=ChatRead)
async def get_team_chat(
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    chats = ChatRepository(session)
    chat = await chats.get_or_create_all_chat()
    messages = await chats.recent_messages(chat.id)
    return ChatRead(chat_id=chat.id, messages=messages)


@router.post("", response_model=MessageRead)
async def send_message(
    message_in: MessageSendRequest,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    effects: SideEffects = Depends(get_side_effects),
    broker: ChangeBroker = Depends(get_broker),
):
    if not message_in.chat_id or not message_in.content:
        raise ValidationError("Chat ID and content are required")

    chats = ChatRepository(session)
    message = await chats.send_message(
        message_in.chat_id, profile.id, message_in.content, reply_to=message_in.reply_to
    )
    response = await chats.get_message(message.id)
    business_events_total.labels(event_type="chat_message_sent").inc()

    broker.publish(ChangeEvent(
        table=TABLE_MESSAGES,
        type="INSERT",
        chat_id=response.chat_id,
        record={"id": response.id, "senderId": response.sender_id},
    ))
    effects.schedule("notify_chat_message", notify_chat_message, response.id)
    return response


@router.get("/messages/{message_id}", response_model=MessageRead)
async def get_message(
    message_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    return await ChatRepository(session).get_message(message_id)


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    broker: ChangeBroker = Depends(get_broker),
):
    """Soft delete; only the sender may remove a message."""
    message = await ChatRepository(session).soft_delete_message(message_id, profile.id)
    broker.publish(ChangeEvent(
        table=TABLE_MESSAGES,
        type="UPDATE",
        chat_id=message.chat_id,
        record={"id": message.id, "isDeleted": True},
    ))
    return {"success": True}


@router.post("/messages/{message_id}/files", response_model=MessageFileRead, status_code=201)
async def attach_file(
    message_id: int,
    file_in: MessageFileCreate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    broker: ChangeBroker = Depends(get_broker),
):
    if not file_in.file_name:
        raise ValidationError("File name is required")
    if not file_in.storage_path:
        file_in.storage_path = build_storage_path(message_id, file_in.file_name)

    chats = ChatRepository(session)
    row = await chats.add_file(message_id, file_in, profile.id)
    response = MessageFileRead.model_validate(row)
    message = await chats.get_message_row(message_id)

    broker.publish(ChangeEvent(
        table=TABLE_MESSAGE_FILES,
        type="INSERT",
        chat_id=message.chat_id,
        record={"id": response.id, "messageId": message_id},
    ))
    return response


@router.get("/files/{file_id}/url", response_model=SignedUrlRead)
async def get_file_url(
    file_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    row = await ChatRepository(session).get_file(file_id)
    url, expires_at = create_signed_url(row.storage_path)
    return SignedUrlRead(url=url, expires_at=expires_at)


@router.get("/messages/{message_id}/reactions", response_model=List[ReactionRead])
async def list_reactions(
    message_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
):
    chats = ChatRepository(session)
    await chats.get_message_row(message_id)
    reactions = await chats.list_reactions(message_id)
    return [ReactionRead.model_validate(r) for r in reactions]


@router.post("/messages/{message_id}/reactions", response_model=ReactionRead)
async def add_reaction(
    message_id: int,
    reaction_in: ReactionCreate,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    broker: ChangeBroker = Depends(get_broker),
):
    chats = ChatRepository(session)
    row = await chats.add_reaction(message_id, profile.id, reaction_in.reaction)
    response = ReactionRead.model_validate(row)
    message = await chats.get_message_row(message_id)

    broker.publish(ChangeEvent(
        table=TABLE_MESSAGE_REACTIONS,
        type="INSERT",
        chat_id=message.chat_id,
        record={"id": response.id, "messageId": message_id, "userId": response.user_id},
    ))
    return response


@router.delete("/reactions/{reaction_id}")
async def remove_reaction(
    reaction_id: int,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    broker: ChangeBroker = Depends(get_broker),
):
    chats = ChatRepository(session)
    row = await chats.remove_reaction(reaction_id, profile.id)
    message_id = row.message_id
    message = await chats.get_message_row(message_id)

    broker.publish(ChangeEvent(
        table=TABLE_MESSAGE_REACTIONS,
        type="DELETE",
        chat_id=message.chat_id,
        record={"id": reaction_id, "messageId": message_id},
    ))
    return {"success": True}


@router.get("/{chat_id}/events")
async def chat_events(
    chat_id: int,
    request: Request,
    profile: Profile = Depends(require_user),
    session: AsyncSession = Depends(get_session),
    broker: ChangeBroker = Depends(get_broker),
):
    """
    Server-Sent Events feed of chat changes.

    Each ``change`` event names a table, an event type and ids; clients
    re-fetch the affected rows over REST. A comment line is sent while idle
    so proxies keep the connection open.
    """
    await ChatRepository(session).get_chat(chat_id)
    queue = broker.subscribe(chat_id)

    async def event_stream():
        try:
            yield ": connected\n\n"
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield event.to_sse()
        finally:
            broker.unsubscribe(chat_id, queue)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
