"""One WebSocket connection's view of the delivery broker."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.ports.bus import Broker, Subscription
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.bus.serializer import message_to_dict
from marketplace_chat.infrastructure.ws.protocol import ErrorCode, OutboundType, WsOutbound

logger = logging.getLogger(__name__)


class GatewaySession:
    """Owns the broker subscriptions of a single connection.

    Every subscription is released by ``close()``; a reconnect starts from
    a fresh session and never sees events published in between.
    """

    def __init__(self, ws: WebSocket, principal: Principal, broker: Broker) -> None:
        self._ws = ws
        self._principal = principal
        self._broker = broker
        self._subscriptions: dict[str, Subscription] = {}
        self._pumps: dict[str, asyncio.Task[None]] = {}

    @property
    def user_id(self) -> str:
        return self._principal.user_id

    @property
    def joined(self) -> set[str]:
        return set(self._subscriptions)

    def join(self, user_id: str) -> bool:
        """Subscribe this connection to ``user_id``'s channel. False if already joined."""
        if user_id in self._subscriptions:
            return False
        sub = self._broker.subscribe(user_id)
        self._subscriptions[user_id] = sub
        self._pumps[user_id] = asyncio.create_task(
            self._pump(sub), name=f"ws-pump-{user_id}",
        )
        return True

    async def publish(self, message: Message) -> None:
        await self._broker.publish(message)

    async def send(self, event_type: OutboundType, data: dict[str, Any]) -> None:
        await self._ws.send_text(WsOutbound(type=event_type, data=data).model_dump_json())

    async def send_error(self, code: ErrorCode, **extra: Any) -> None:
        await self._ws.send_text(WsOutbound.error(code, **extra).model_dump_json())

    async def _pump(self, sub: Subscription) -> None:
        try:
            async for message in sub:
                await self.send(OutboundType.RECEIVE_MESSAGE, {"message": message_to_dict(message)})
        except asyncio.CancelledError:
            raise
        except Exception:
            # The socket is gone; the read loop will notice and close us.
            logger.debug("WS pump for %s stopped", sub.user_id, exc_info=True)

    async def close(self) -> None:
        for sub in self._subscriptions.values():
            sub.close()
        for task in self._pumps.values():
            task.cancel()
        for task in self._pumps.values():
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._subscriptions.clear()
        self._pumps.clear()
        logger.debug("WS session for %s closed", self.user_id)
