"""In-process change feed for chat.

Routes publish a ``ChangeEvent`` after each committed chat write; each open
``GET /api/chat/{id}/events`` stream holds a subscription queue. Events carry
only ids and the table/type pair. Subscribers re-fetch full rows through the
REST endpoints, so a dropped or duplicated event is harmless.
"""

import asyncio
import json
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Set

from observability.logging import get_logger
from observability.metrics import chat_subscribers_gauge

logger = get_logger(__name__)

TABLE_MESSAGES = "messages"
TABLE_MESSAGE_FILES = "message_files"
TABLE_MESSAGE_REACTIONS = "message_reactions"

QUEUE_SIZE = 256


@dataclass
class ChangeEvent:
    table: str
    type: str  # INSERT | UPDATE | DELETE
    chat_id: int
    record: Dict[str, Any] = field(default_factory=dict)
    at: str = field(default_factory=lambda: datetime.utcnow().isoformat())

    def to_sse(self) -> str:
        return f"event: change\ndata: {json.dumps(asdict(self))}\n\n"


class ChangeBroker:
    def __init__(self):
        self._subscribers: Dict[int, Set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, chat_id: int) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers[chat_id].add(queue)
        chat_subscribers_gauge.inc()
        return queue

    def unsubscribe(self, chat_id: int, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(chat_id)
        if queues and queue in queues:
            queues.discard(queue)
            chat_subscribers_gauge.dec()
            if not queues:
                del self._subscribers[chat_id]

    def subscriber_count(self, chat_id: int) -> int:
        return len(self._subscribers.get(chat_id, ()))

    def publish(self, event: ChangeEvent) -> int:
        """Fan an event out to every subscriber of its chat. Returns deliveries."""
        delivered = 0
        for queue in list(self._subscribers.get(event.chat_id, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                # Slow consumer; it will resync from REST on reconnect
                logger.warning(f"[Realtime] Dropping {event.table}/{event.type} for a full subscriber queue")
        return delivered


broker = ChangeBroker()


def get_broker() -> ChangeBroker:
    return broker
