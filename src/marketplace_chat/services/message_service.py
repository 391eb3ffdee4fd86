from __future__ import annotations

import logging
from uuid import UUID

from marketplace_chat.application.exceptions import NotFoundError, ValidationError
from marketplace_chat.application.ports.clock import Clock, system_clock
from marketplace_chat.application.ports.directory import ListingDirectory
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.domain.entities.message import Message

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 2000


def validate_send(
    text: str | None,
    sender_id: str | None,
    receiver_id: str | None,
    topic_id: str | None,
    *,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> None:
    if not text or not text.strip():
        raise ValidationError("Missing required fields: text")
    if not receiver_id:
        raise ValidationError("Missing required fields: receiverId")
    if not topic_id:
        raise ValidationError("Missing required fields: topicId")
    if not sender_id:
        raise ValidationError("Missing sender")
    if sender_id == receiver_id:
        raise ValidationError("Cannot send a message to yourself")
    if len(text) > max_length:
        raise ValidationError(f"Message text exceeds {max_length} characters")


async def persist(
    text: str | None,
    sender_id: str,
    receiver_id: str | None,
    topic_id: str | None,
    uow: UnitOfWork,
    listings: ListingDirectory,
    *,
    client_msg_id: UUID | None = None,
    clock: Clock | None = None,
    max_length: int = DEFAULT_MAX_LENGTH,
) -> Message:
    """Append one message to the topic log and return the canonical record.

    This is the only write path. Nothing is stored (and the caller must not
    publish anything) when validation fails. Appends to one topic are
    serialized, so ids and ``created_at`` grow together. Retrying with the
    same ``client_msg_id`` returns the message stored the first time.
    """
    validate_send(text, sender_id, receiver_id, topic_id, max_length=max_length)
    assert text is not None and receiver_id is not None and topic_id is not None

    if not await listings.exists(topic_id):
        raise NotFoundError("Listing not found")

    await uow.messages_w.lock_topic(topic_id)
    now = (clock or system_clock).now()
    latest = await uow.messages.latest_created_at(topic_id)
    if latest is not None and latest > now:
        now = latest

    msg, created = await uow.messages_w.create_if_not_exists(
        text=text,
        sender_id=sender_id,
        receiver_id=receiver_id,
        topic_id=topic_id,
        created_at=now,
        client_msg_id=client_msg_id,
    )
    await uow.commit()
    if created:
        logger.info("Persisted message %s in topic %s", msg.id, topic_id)
    else:
        logger.info("Duplicate send %s resolved to message %s", client_msg_id, msg.id)
    return msg


async def query_by_topic(topic_id: str, uow: UnitOfWork) -> list[Message]:
    """Every message ever persisted for ``topic_id``, all pairs, creation ordered."""
    return await uow.messages.list_by_topic(topic_id)


async def query_visible(
    topic_id: str,
    user_id: str,
    uow: UnitOfWork,
    *,
    expose_topic_history: bool = False,
) -> list[Message]:
    """History of a topic as served to ``user_id`` over the API.

    With ``expose_topic_history`` the whole topic log is returned (every pair),
    otherwise only messages the caller sent or received.
    """
    messages = await query_by_topic(topic_id, uow)
    if expose_topic_history:
        return messages
    return [m for m in messages if m.involves(user_id)]


async def get_message(message_id: int, uow: UnitOfWork) -> Message | None:
    return await uow.messages.get_by_id(message_id)


async def list_for_participant(user_id: str, uow: UnitOfWork) -> list[Message]:
    return await uow.messages.list_for_participant(user_id)
