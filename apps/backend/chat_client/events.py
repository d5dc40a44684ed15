"""Server-Sent Events parsing for the chat change feed."""
import json
import logging
from typing import AsyncIterable, AsyncIterator, List, Optional

from services.realtime import ChangeEvent

logger = logging.getLogger("chat_client")

CHANGE_EVENT = "change"


async def iter_change_events(lines: AsyncIterable[str]) -> AsyncIterator[ChangeEvent]:
    """
    Turn raw SSE lines into ChangeEvents.

    Comment lines (keep-alives) and events other than ``change`` are skipped.
    A payload that is not valid JSON is logged and dropped.
    """
    event_name: Optional[str] = None
    data: List[str] = []

    async for raw in lines:
        line = raw.rstrip("\r")
        if line == "":
            if data and (event_name or "message") == CHANGE_EVENT:
                try:
                    yield ChangeEvent(**json.loads("\n".join(data)))
                except (ValueError, TypeError) as e:
                    logger.warning(f"[CHAT] Dropping malformed change event: {e}")
            event_name, data = None, []
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event_name = value
        elif field == "data":
            data.append(value)
