from __future__ import annotations

from dataclasses import dataclass, field

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.ids import ConversationKey


@dataclass(slots=True)
class Conversation:
    """Derived view: messages sharing one topic between the owner and one counterpart."""

    topic_id: str
    counterpart_id: str
    messages: list[Message] = field(default_factory=list)

    @property
    def key(self) -> ConversationKey:
        return ConversationKey(self.topic_id, self.counterpart_id)

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None
