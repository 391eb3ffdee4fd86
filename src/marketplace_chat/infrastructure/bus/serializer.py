from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from marketplace_chat.domain.entities.message import Message


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "text": message.text,
        "senderId": message.sender_id,
        "receiverId": message.receiver_id,
        "topicId": message.topic_id,
        "createdAt": message.created_at,
        "clientMsgId": message.client_msg_id,
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    created_at = data["createdAt"]
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at)
    client_msg_id = data.get("clientMsgId")
    if isinstance(client_msg_id, str):
        client_msg_id = UUID(client_msg_id)
    return Message(
        id=int(data["id"]),
        text=data["text"],
        sender_id=str(data["senderId"]),
        receiver_id=str(data["receiverId"]),
        topic_id=str(data["topicId"]),
        created_at=created_at,
        client_msg_id=client_msg_id,
    )


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]
