"""Thin async HTTP client for the /api/chat endpoints."""
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from chat_client.events import iter_change_events
from schemas import ChatRead, MessageFileRead, MessageRead, ReactionRead, SignedUrlRead
from services.realtime import ChangeEvent

logger = logging.getLogger("chat_client")


class ChatApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ChatApiClient:
    """
    Wraps the chat REST surface and the change feed.

    Pass ``client`` to reuse an existing httpx.AsyncClient (tests hand in
    one bound to the ASGI app); otherwise one is created for ``base_url``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.token = token
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    def _get_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self.client.request(method, path, headers=self._get_headers(), **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("error") or response.text
            except ValueError:
                message = response.text
            logger.warning(f"[CHAT] {method} {path} failed: {response.status_code} - {message}")
            raise ChatApiError(response.status_code, message)
        return response.json()

    async def get_chat(self) -> ChatRead:
        return ChatRead.model_validate(await self._request("GET", "/api/chat"))

    async def send_message(self, chat_id: int, content: str, reply_to: Optional[int] = None) -> MessageRead:
        payload = {"chatId": chat_id, "content": content, "replyTo": reply_to}
        return MessageRead.model_validate(await self._request("POST", "/api/chat", json=payload))

    async def get_message(self, message_id: int) -> MessageRead:
        return MessageRead.model_validate(await self._request("GET", f"/api/chat/messages/{message_id}"))

    async def delete_message(self, message_id: int) -> None:
        await self._request("DELETE", f"/api/chat/messages/{message_id}")

    async def attach_file(
        self, message_id: int, file_name: str, file_size: int = 0, file_type: Optional[str] = None
    ) -> MessageFileRead:
        payload = {"fileName": file_name, "fileSize": file_size, "fileType": file_type}
        data = await self._request("POST", f"/api/chat/messages/{message_id}/files", json=payload)
        return MessageFileRead.model_validate(data)

    async def get_file_url(self, file_id: int) -> SignedUrlRead:
        return SignedUrlRead.model_validate(await self._request("GET", f"/api/chat/files/{file_id}/url"))

    async def list_reactions(self, message_id: int) -> List[ReactionRead]:
        data = await self._request("GET", f"/api/chat/messages/{message_id}/reactions")
        return [ReactionRead.model_validate(r) for r in data]

    async def add_reaction(self, message_id: int, reaction: str) -> ReactionRead:
        data = await self._request("POST", f"/api/chat/messages/{message_id}/reactions", json={"reaction": reaction})
        return ReactionRead.model_validate(data)

    async def remove_reaction(self, reaction_id: int) -> None:
        await self._request("DELETE", f"/api/chat/reactions/{reaction_id}")

    async def stream_events(self, chat_id: int) -> AsyncIterator[ChangeEvent]:
        """Yield change events from the SSE feed until the server closes it."""
        async with self.client.stream(
            "GET",
            f"/api/chat/{chat_id}/events",
            headers={**self._get_headers(), "Accept": "text/event-stream"},
            timeout=None,
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                raise ChatApiError(response.status_code, response.text)
            async for event in iter_change_events(response.aiter_lines()):
                yield event

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
