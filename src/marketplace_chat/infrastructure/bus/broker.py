"""In-process per-user fan-out."""
from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import AsyncIterator, Self

from marketplace_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)


class Subscription:
    """One session's handle on a user channel.

    Released with ``close()`` or by leaving the ``async with`` block. Events
    published while the handle is closed or its buffer is full are dropped.
    """

    def __init__(self, broker: LocalBroker, user_id: str, maxsize: int) -> None:
        self.user_id = user_id
        self._broker = broker
        self._queue: asyncio.Queue[Message | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: Message) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Dropping message %s for %s: buffer full", message.id, self.user_id)
            return False
        return True

    async def get(self) -> Message:
        """Wait for the next event. Raises ``StopAsyncIteration`` once closed."""
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> AsyncIterator[Message]:
        return self

    async def __anext__(self) -> Message:
        return await self.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._broker.unsubscribe(self)
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # Drain so a waiting consumer wakes up on the sentinel.
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(None)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class LocalBroker:
    """Implements application.ports.bus.Broker inside one process."""

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._channels: dict[str, set[Subscription]] = {}

    def subscribe(self, user_id: str) -> Subscription:
        sub = Subscription(self, user_id, self._queue_size)
        self._channels.setdefault(user_id, set()).add(sub)
        logger.debug("Subscribed %s (sessions=%d)", user_id, len(self._channels[user_id]))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._channels.get(sub.user_id)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._channels[sub.user_id]
        logger.debug("Unsubscribed %s", sub.user_id)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._channels.get(user_id, ()))

    async def publish(self, message: Message) -> None:
        self.deliver(message)

    def deliver(self, message: Message) -> int:
        """Push ``message`` to the receiver's and the sender's channels.

        Returns the number of sessions reached. Nobody listening means the
        event is lost.
        """
        delivered = 0
        for channel in {message.receiver_id, message.sender_id}:
            for sub in list(self._channels.get(channel, ())):
                if sub.offer(message):
                    delivered += 1
        if not delivered:
            logger.debug("No live session for message %s", message.id)
        return delivered
