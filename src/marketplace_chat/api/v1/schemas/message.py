from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from marketplace_chat.domain.entities.message import Message


class SendMessageRequest(BaseModel):
    # Optional on purpose: missing fields are reported by the service as 400.
    text: str | None = None
    receiver_id: str | None = None
    client_msg_id: UUID | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    id: int
    text: str
    sender_id: str
    receiver_id: str
    topic_id: str
    client_msg_id: UUID | None
    created_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_entity(cls, msg: Message) -> MessageResponse:
        return cls(
            id=msg.id,
            text=msg.text,
            sender_id=msg.sender_id,
            receiver_id=msg.receiver_id,
            topic_id=msg.topic_id,
            client_msg_id=msg.client_msg_id,
            created_at=msg.created_at,
        )
