"""Grouping of a user's messages into (topic, counterpart) conversations."""
from __future__ import annotations

from typing import Iterable

from marketplace_chat.domain.entities.conversation import Conversation
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.domain.value_objects.ids import ConversationKey


def conversation_key(message: Message, user_id: str) -> ConversationKey:
    return ConversationKey(message.topic_id, message.counterpart_of(user_id))


def build_conversation_index(
    messages: Iterable[Message],
    user_id: str,
) -> dict[ConversationKey, Conversation]:
    """Group ``messages`` by (topic_id, counterpart_id) from ``user_id``'s point of view.

    Messages the user is not a party to are skipped. Within a group, messages
    are ordered by creation (created_at, then store id) regardless of the
    input order. Recomputed from scratch on every call.
    """
    index: dict[ConversationKey, Conversation] = {}
    for message in messages:
        if not message.involves(user_id):
            continue
        key = conversation_key(message, user_id)
        conv = index.get(key)
        if conv is None:
            conv = index[key] = Conversation(topic_id=key.topic_id, counterpart_id=key.counterpart_id)
        conv.messages.append(message)

    for conv in index.values():
        conv.messages.sort(key=lambda m: (m.created_at, m.id))
    return index
