from __future__ import annotations

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        text=model.text,
        sender_id=model.sender_id,
        receiver_id=model.receiver_id,
        topic_id=model.topic_id,
        created_at=model.created_at,
        client_msg_id=model.client_msg_id,
    )
