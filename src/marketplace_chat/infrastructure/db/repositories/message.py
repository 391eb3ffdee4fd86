from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.db.mappers import message as mapper
from marketplace_chat.infrastructure.db.models.message import MessageModel

# Appends are serialized per topic, so identity order is creation order.
_TIMELINE = (MessageModel.id.asc(),)


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_by_topic(self, topic_id: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.topic_id == topic_id)
            .order_by(*_TIMELINE)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def list_for_participant(self, user_id: str) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                or_(
                    MessageModel.sender_id == user_id,
                    MessageModel.receiver_id == user_id,
                )
            )
            .order_by(*_TIMELINE)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def get_by_id(self, message_id: int) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(model) if model else None

    async def get_by_client_msg_id(self, sender_id: str, client_msg_id: UUID) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.sender_id == sender_id,
            MessageModel.client_msg_id == client_msg_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def latest_created_at(self, topic_id: str) -> datetime | None:
        stmt = select(func.max(MessageModel.created_at)).where(MessageModel.topic_id == topic_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def lock_topic(self, topic_id: str) -> None:
        """Hold the topic's append lock until the transaction ends."""
        await self._session.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(topic_id)))
        )

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
        """Insert message idempotently. Returns (message, created_flag)."""
        stmt = (
            pg_insert(MessageModel)
            .values(
                text=text,
                sender_id=sender_id,
                receiver_id=receiver_id,
                topic_id=topic_id,
                created_at=created_at,
                client_msg_id=client_msg_id,
            )
            .on_conflict_do_nothing(constraint="uq_messages_client_msg")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        # Conflict: the sender already stored this client_msg_id.
        assert client_msg_id is not None
        existing = await MessageReaderRepo(self._session).get_by_client_msg_id(sender_id, client_msg_id)
        assert existing is not None
        return existing, False
