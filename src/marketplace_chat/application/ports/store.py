from __future__ import annotations

from typing import Protocol
from uuid import UUID

from marketplace_chat.domain.entities.message import Message


class MessageStore(Protocol):
    """Client view of the message store. The sender is the authenticated caller."""

    async def persist(
        self,
        text: str,
        receiver_id: str,
        topic_id: str,
        *,
        client_msg_id: UUID | None = None,
    ) -> Message: ...

    async def query_by_topic(self, topic_id: str) -> list[Message]: ...
