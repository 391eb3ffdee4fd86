from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from marketplace_chat.api.v1.schemas.message import MessageResponse
from marketplace_chat.domain.entities.conversation import Conversation


class ConversationSummaryResponse(BaseModel):
    topic_id: str
    counterpart_id: str
    message_count: int
    last_message: MessageResponse

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_entity(cls, conv: Conversation) -> ConversationSummaryResponse:
        return cls(
            topic_id=conv.topic_id,
            counterpart_id=conv.counterpart_id,
            message_count=len(conv.messages),
            last_message=MessageResponse.from_entity(conv.messages[-1]),
        )
