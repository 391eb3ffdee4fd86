from __future__ import annotations

from typing import AsyncIterator, Protocol

from marketplace_chat.domain.entities.message import Message


class Subscription(Protocol):
    user_id: str

    @property
    def closed(self) -> bool: ...

    async def get(self) -> Message: ...

    def __aiter__(self) -> AsyncIterator[Message]: ...

    def close(self) -> None: ...


class Broker(Protocol):
    """Best-effort per-user fan-out. Never the system of record."""

    def subscribe(self, user_id: str) -> Subscription: ...

    async def publish(self, message: Message) -> None: ...
