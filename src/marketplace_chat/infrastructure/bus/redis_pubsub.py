"""Redis Pub/Sub relay: cross-process fan-out in front of the local broker."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.bus.broker import LocalBroker, Subscription
from marketplace_chat.infrastructure.bus.serializer import (
    deserialize_event,
    message_from_dict,
    message_to_dict,
    serialize_event,
)

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message.created"

OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event_type, data = deserialize_event(message["data"])
                    await self._callback(event_type, data)
                except Exception:
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()


class RedisBroker:
    """Implements application.ports.bus.Broker across server processes.

    ``publish`` goes through Redis; every process (this one included) hears
    it back and hands it to its own ``LocalBroker``. Subscriptions are always
    local to the process holding the WebSocket.
    """

    def __init__(self, redis: aioredis.Redis, channel: str, local: LocalBroker) -> None:
        self._redis = redis
        self._channel = channel
        self._local = local
        self._subscriber = RedisPubSubSubscriber(redis, channel, self._on_event)

    async def start(self) -> None:
        await self._subscriber.start()

    async def stop(self) -> None:
        await self._subscriber.stop()

    def subscribe(self, user_id: str) -> Subscription:
        return self._local.subscribe(user_id)

    async def publish(self, message: Message) -> None:
        raw = serialize_event(MESSAGE_EVENT, message_to_dict(message))
        await self._redis.publish(self._channel, raw)

    async def _on_event(self, event_type: str, data: dict[str, Any]) -> None:
        if event_type != MESSAGE_EVENT:
            logger.debug("Ignoring pubsub event %s", event_type)
            return
        self._local.deliver(message_from_dict(data))
