"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable
from uuid import UUID

import pytest

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import TransportError
from marketplace_chat.domain.entities.message import Message
from marketplace_chat.infrastructure.directory.listings import StaticListingDirectory
from marketplace_chat.services import message_service

T0 = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(10_000)


@pytest.fixture
def user_principal() -> Principal:
    return Principal(user_id="u1")


def make_message(
    *,
    sender_id: str = "u1",
    receiver_id: str = "u2",
    topic_id: str = "L1",
    text: str = "hello",
    message_id: int | None = None,
    created_at: datetime | None = None,
    client_msg_id: UUID | None = None,
) -> Message:
    mid = message_id if message_id is not None else next(_ids)
    return Message(
        id=mid,
        text=text,
        sender_id=sender_id,
        receiver_id=receiver_id,
        topic_id=topic_id,
        created_at=created_at or T0 + timedelta(seconds=mid),
        client_msg_id=client_msg_id,
    )


@dataclass
class FixedClock:
    """Clock that only moves when told to."""

    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class FakeMessageReader:
    """Stands in for the messages table: rows and per-topic append locks."""

    _messages: list[Message] = field(default_factory=list)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)

    async def list_by_topic(self, topic_id: str) -> list[Message]:
        return sorted(
            (m for m in self._messages if m.topic_id == topic_id),
            key=lambda m: m.id,
        )

    async def list_for_participant(self, user_id: str) -> list[Message]:
        return sorted(
            (m for m in self._messages if m.involves(user_id)),
            key=lambda m: m.id,
        )

    async def get_by_id(self, message_id: int) -> Message | None:
        for m in self._messages:
            if m.id == message_id:
                return m
        return None

    async def get_by_client_msg_id(self, sender_id: str, client_msg_id: UUID) -> Message | None:
        for m in self._messages:
            if m.sender_id == sender_id and m.client_msg_id == client_msg_id:
                return m
        return None

    async def latest_created_at(self, topic_id: str) -> datetime | None:
        stamps = [m.created_at for m in self._messages if m.topic_id == topic_id]
        # Yield between the read and the caller's insert, like a round trip would.
        await asyncio.sleep(0)
        return max(stamps) if stamps else None


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader
    _held: list[asyncio.Lock] = field(default_factory=list)

    async def lock_topic(self, topic_id: str) -> None:
        lock = self._reader._locks.setdefault(topic_id, asyncio.Lock())
        await lock.acquire()
        self._held.append(lock)

    def release(self) -> None:
        while self._held:
            self._held.pop().release()

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
        if client_msg_id is not None:
            existing = await self._reader.get_by_client_msg_id(sender_id, client_msg_id)
            if existing is not None:
                return existing, False
        msg = Message(
            id=max((m.id for m in self._reader._messages), default=0) + 1,
            text=text,
            sender_id=sender_id,
            receiver_id=receiver_id,
            topic_id=topic_id,
            created_at=created_at,
            client_msg_id=client_msg_id,
        )
        self._reader._messages.append(msg)
        return msg, True


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    _committed: bool = False
    _commits: int = 0

    def __post_init__(self) -> None:
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)

    @property
    def stored(self) -> list[Message]:
        return list(self.messages._messages)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True
        self._commits += 1
        self.messages_w.release()

    async def rollback(self) -> None:
        self.messages_w.release()

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.messages_w.release()


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def listings() -> StaticListingDirectory:
    return StaticListingDirectory({"L1", "L2", "L3"})


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@dataclass
class FakeMessageStore:
    """Client-side store for one authenticated user, backed by a FakeUoW."""

    user_id: str
    uow: FakeUoW
    listings: StaticListingDirectory
    clock: FixedClock | None = None
    persist_calls: int = 0
    query_calls: int = 0

    async def persist(
        self,
        text: str,
        receiver_id: str,
        topic_id: str,
        *,
        client_msg_id: UUID | None = None,
    ) -> Message:
        self.persist_calls += 1
        return await message_service.persist(
            text,
            self.user_id,
            receiver_id,
            topic_id,
            self.uow,
            self.listings,
            client_msg_id=client_msg_id,
            clock=self.clock,
        )

    async def query_by_topic(self, topic_id: str) -> list[Message]:
        self.query_calls += 1
        return await message_service.query_by_topic(topic_id, self.uow)


@dataclass
class UnreachableStore:
    """Store whose every call fails like a dropped connection."""

    async def persist(self, text: str, receiver_id: str, topic_id: str, *, client_msg_id: UUID | None = None) -> Message:
        raise TransportError("connection reset")

    async def query_by_topic(self, topic_id: str) -> list[Message]:
        raise TransportError("connection reset")


def seed(uow: FakeUoW, messages: Iterable[Message]) -> None:
    uow.messages._messages.extend(messages)
