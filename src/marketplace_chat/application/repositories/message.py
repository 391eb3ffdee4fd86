from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from marketplace_chat.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_by_topic(self, topic_id: str) -> list[Message]:
        """All messages of a topic, every participant pair, creation ordered."""
        ...

    async def list_for_participant(self, user_id: str) -> list[Message]: ...

    async def get_by_id(self, message_id: int) -> Message | None: ...

    async def get_by_client_msg_id(self, sender_id: str, client_msg_id: UUID) -> Message | None: ...

    async def latest_created_at(self, topic_id: str) -> datetime | None: ...


class MessageWriter(Protocol):
    async def lock_topic(self, topic_id: str) -> None:
        """Serialize appends to ``topic_id`` until commit or rollback."""
        ...

    async def create_if_not_exists(
        self,
        *,
        text: str,
        sender_id: str,
        receiver_id: str,
        topic_id: str,
        created_at: datetime,
        client_msg_id: UUID | None = None,
    ) -> tuple[Message, bool]:
        """Insert one message unless the sender already stored ``client_msg_id``.

        Returns the stored message and whether this call created it.
        """
        ...
