"""In-process party event bus.

Each SSE subscriber gets its own ``asyncio.Queue``; events are fanned out to
the live subscribers of one party. Nothing is persisted: a client that
connects late sees only events emitted after it subscribed. A ``None`` in the
queue tells the stream to end.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()

EVENT_TYPES = frozenset({
    "member_joined",
    "member_left",
    "ready_changed",
    "locked_changed",
    "leader_changed",
    "started",
    "closed",
})


@dataclass
class PartyEvent:
    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}


class PartyEventBus:
    """Fan-out of party events to subscriber queues.

    Safe for asyncio via the single-threaded event loop.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: dict[str, set[asyncio.Queue[PartyEvent | None]]] = defaultdict(set)

    def subscribe(self, party_id: str) -> asyncio.Queue[PartyEvent | None]:
        queue: asyncio.Queue[PartyEvent | None] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers[party_id].add(queue)
        logger.debug("party_stream_subscribed", party_id=party_id)
        return queue

    def unsubscribe(self, party_id: str, queue: asyncio.Queue[PartyEvent | None]) -> None:
        queues = self._subscribers.get(party_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[party_id]

    def emit(self, party_id: str, event_type: str, data: dict[str, Any] | None = None) -> int:
        """Push an event to every subscriber of a party. Returns the number of queues reached."""
        if event_type not in EVENT_TYPES:
            msg = f"Unknown party event type: {event_type}"
            raise ValueError(msg)

        event = PartyEvent(type=event_type, data=data or {})
        delivered = 0
        for queue in list(self._subscribers.get(party_id, ())):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("party_event_dropped", party_id=party_id, type=event_type)
        return delivered

    def close_stream(self, party_id: str) -> None:
        """End every open stream for a party and forget it."""
        for queue in self._subscribers.pop(party_id, set()):
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                # Make room for the terminator; the subscriber is closing anyway.
                queue.get_nowait()
                queue.put_nowait(None)

    def subscriber_count(self, party_id: str) -> int:
        return len(self._subscribers.get(party_id, ()))

    @property
    def active_party_ids(self) -> list[str]:
        return list(self._subscribers.keys())


# Global singleton
party_events = PartyEventBus()
