"""Topic-scoped broadcast primitives for the monitor's event streams."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Hashable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

KEEPALIVE_COMMENT = b": keep-alive\n\n"


class EventBroadcaster:
    """Publish payloads to the subscribers of a topic with backpressure handling.

    A topic is any hashable key; the monitor uses ``(view, mode)`` pairs so a
    client only receives summaries for the page it is showing.
    """

    def __init__(self, max_buffer: int = 32) -> None:
        self._max_buffer = max_buffer
        self._subscribers: dict[Hashable, set[asyncio.Queue[Any]]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock: asyncio.Lock | None = None

    def subscriber_count(self, topic: Hashable | None = None) -> int:
        if topic is None:
            return sum(len(queues) for queues in self._subscribers.values())
        return len(self._subscribers.get(topic, ()))

    async def subscribe(self, topic: Hashable) -> asyncio.Queue[Any]:
        """Register a new subscriber to *topic* and return its queue."""

        queue: asyncio.Queue[Any] = asyncio.Queue(self._max_buffer)
        loop = asyncio.get_running_loop()

        if self._loop is None:
            self._loop = loop
            self._lock = asyncio.Lock()
        elif self._loop is not loop:
            raise RuntimeError("EventBroadcaster is bound to a different event loop")

        async with self._ensure_lock():
            self._subscribers.setdefault(topic, set()).add(queue)
        return queue

    async def unsubscribe(self, topic: Hashable, queue: asyncio.Queue[Any]) -> None:
        lock = self._lock
        if lock is None:
            self._discard(topic, queue)
            return
        async with lock:
            self._discard(topic, queue)

    def _discard(self, topic: Hashable, queue: asyncio.Queue[Any]) -> bool:
        queues = self._subscribers.get(topic)
        if not queues or queue not in queues:
            return False
        queues.discard(queue)
        if not queues:
            del self._subscribers[topic]
        return True

    async def iter(self, topic: Hashable) -> AsyncIterator[Any]:
        """Yield events published to *topic* for the lifetime of the subscription."""

        queue = await self.subscribe(topic)
        try:
            while True:
                yield await queue.get()
        finally:
            await self.unsubscribe(topic, queue)

    def publish(self, topic: Hashable, payload: Any) -> None:
        """Schedule *payload* for delivery to every subscriber of *topic*."""

        loop = self._loop
        if loop is None:
            return

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is loop:
            loop.create_task(self._publish(topic, payload))
        else:
            loop.call_soon_threadsafe(self._schedule_publish, topic, payload)

    def _schedule_publish(self, topic: Hashable, payload: Any) -> None:
        self._ensure_loop().create_task(self._publish(topic, payload))

    async def _publish(self, topic: Hashable, payload: Any) -> None:
        lock = self._lock
        if lock is None:
            return

        async with lock:
            subscribers = list(self._subscribers.get(topic, ()))

        if not subscribers:
            return

        to_remove = [queue for queue in subscribers if not self._offer(queue, payload)]
        if to_remove:
            async with lock:
                for queue in to_remove:
                    if self._discard(topic, queue):
                        logger.warning(
                            "monitor.events.dropped_subscriber",
                            topic=str(topic),
                            queue_id=id(queue),
                        )

    def _offer(self, queue: asyncio.Queue[Any], payload: Any) -> bool:
        """Enqueue *payload* without blocking.

        When the queue is full the oldest event is discarded and the put is
        retried once; a subscriber that still cannot keep up is dropped.
        """

        try:
            queue.put_nowait(payload)
            return True
        except asyncio.QueueFull:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:  # pragma: no cover - race with consumer
                pass
            try:
                queue.put_nowait(payload)
                logger.warning("monitor.events.backpressure", queue_id=id(queue), action="trim")
                return True
            except asyncio.QueueFull:
                logger.warning("monitor.events.backpressure", queue_id=id(queue), action="drop")
                return False

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        loop = self._loop
        if loop is None:
            raise RuntimeError("EventBroadcaster has not been bound to an event loop")
        return loop

    def _ensure_lock(self) -> asyncio.Lock:
        lock = self._lock
        if lock is None:
            raise RuntimeError("EventBroadcaster lock is not initialized")
        return lock


def format_sse_chunk(event_name: str | None, payload: Any) -> bytes:
    """Encode *payload* as a single server-sent event frame."""

    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    lines: list[bytes] = []
    if event_name:
        lines.append(b"event: " + event_name.encode("utf-8"))
    lines.append(b"data: " + data)
    return b"\n".join(lines) + b"\n\n"


__all__ = ["EventBroadcaster", "KEEPALIVE_COMMENT", "format_sse_chunk"]
