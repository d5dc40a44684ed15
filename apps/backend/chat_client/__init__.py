"""Async client and local state sync for the team chat."""

from chat_client.api import ChatApiClient, ChatApiError
from chat_client.events import iter_change_events
from chat_client.state import ChatState, ChatSync, PendingFile

__all__ = [
    "ChatApiClient",
    "ChatApiError",
    "ChatState",
    "ChatSync",
    "PendingFile",
    "iter_change_events",
]
