from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta

import pytest

from marketplace_chat.application.exceptions import NotFoundError, ValidationError
from marketplace_chat.services import message_service
from tests.conftest import T0, FakeUoW, FixedClock, make_message, seed


@pytest.mark.asyncio
async def test_persist_returns_canonical_message(uow, listings, clock):
    msg = await message_service.persist("Is it available?", "u1", "u2", "L1", uow, listings, clock=clock)

    assert msg.id is not None
    assert msg.text == "Is it available?"
    assert msg.sender_id == "u1"
    assert msg.receiver_id == "u2"
    assert msg.topic_id == "L1"
    assert msg.created_at == clock.now()
    assert uow._committed is True

    history = await message_service.query_by_topic("L1", uow)
    assert history[-1] == msg


@pytest.mark.asyncio
async def test_persist_keeps_client_correlation_id(uow, listings):
    cid = uuid.uuid4()
    msg = await message_service.persist("hi", "u1", "u2", "L1", uow, listings, client_msg_id=cid)
    assert msg.client_msg_id == cid


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("text", "receiver_id", "topic_id"),
    [
        ("", "u2", "L1"),
        (None, "u2", "L1"),
        ("   ", "u2", "L1"),
        ("hi", "", "L1"),
        ("hi", None, "L1"),
        ("hi", "u2", ""),
        ("hi", "u2", None),
    ],
)
async def test_persist_rejects_missing_fields(uow, listings, text, receiver_id, topic_id):
    with pytest.raises(ValidationError):
        await message_service.persist(text, "u1", receiver_id, topic_id, uow, listings)

    assert uow.stored == []
    assert uow._committed is False


@pytest.mark.asyncio
async def test_persist_rejects_message_to_self(uow, listings):
    with pytest.raises(ValidationError):
        await message_service.persist("hi", "u1", "u1", "L1", uow, listings)
    assert uow.stored == []


@pytest.mark.asyncio
async def test_persist_rejects_overlong_text(uow, listings):
    with pytest.raises(ValidationError):
        await message_service.persist("x" * 11, "u1", "u2", "L1", uow, listings, max_length=10)


@pytest.mark.asyncio
async def test_persist_unknown_listing(uow, listings):
    with pytest.raises(NotFoundError):
        await message_service.persist("hi", "u1", "u2", "nope", uow, listings)
    assert uow.stored == []


@pytest.mark.asyncio
async def test_ids_unique_and_created_at_non_decreasing(uow, listings, clock):
    sent = []
    for i in range(5):
        sent.append(await message_service.persist(f"m{i}", "u1", "u2", "L1", uow, listings, clock=clock))
        # Wall clock stepping backwards must not reorder the topic.
        clock.advance(-3 if i % 2 else 2)

    assert len({m.id for m in sent}) == len(sent)
    for prev, cur in zip(sent, sent[1:]):
        assert cur.created_at >= prev.created_at
        assert cur.id > prev.id


@pytest.mark.asyncio
async def test_query_by_topic_returns_every_pair(uow, listings, clock):
    await message_service.persist("a", "u1", "u2", "L1", uow, listings, clock=clock)
    clock.advance(1)
    await message_service.persist("b", "u3", "u2", "L1", uow, listings, clock=clock)
    clock.advance(1)
    await message_service.persist("c", "u1", "u2", "L2", uow, listings, clock=clock)

    history = await message_service.query_by_topic("L1", uow)

    assert [m.text for m in history] == ["a", "b"]


@pytest.mark.asyncio
async def test_query_by_topic_is_idempotent(uow, listings):
    for text in ("one", "two", "three"):
        await message_service.persist(text, "u1", "u2", "L1", uow, listings)

    first = await message_service.query_by_topic("L1", uow)
    second = await message_service.query_by_topic("L1", uow)

    assert first == second


@pytest.mark.asyncio
async def test_query_visible_scopes_to_caller_by_default():
    uow = FakeUoW()
    seed(uow, [
        make_message(sender_id="u1", receiver_id="u2", text="mine"),
        make_message(sender_id="u3", receiver_id="u2", text="theirs"),
    ])

    scoped = await message_service.query_visible("L1", "u1", uow)
    exposed = await message_service.query_visible("L1", "u1", uow, expose_topic_history=True)

    assert [m.text for m in scoped] == ["mine"]
    assert [m.text for m in exposed] == ["mine", "theirs"]


@pytest.mark.asyncio
async def test_get_message(uow, listings):
    msg = await message_service.persist("hi", "u1", "u2", "L1", uow, listings)

    assert await message_service.get_message(msg.id, uow) == msg
    assert await message_service.get_message(msg.id + 100, uow) is None


@pytest.mark.asyncio
async def test_list_for_participant_orders_by_creation():
    uow = FakeUoW()
    early = make_message(sender_id="u1", receiver_id="u2")
    late = make_message(sender_id="u2", receiver_id="u1", topic_id="L2")
    seed(uow, [late, early, make_message(sender_id="u3", receiver_id="u4")])

    result = await message_service.list_for_participant("u1", uow)

    assert result == [early, late]


@pytest.mark.asyncio
async def test_concurrent_sends_to_one_topic_stay_ordered(listings):
    uow_a = FakeUoW()
    uow_b = FakeUoW(messages=uow_a.messages)
    ahead = FixedClock(T0 + timedelta(seconds=20))
    behind = FixedClock(T0 + timedelta(seconds=10))

    first, second = await asyncio.gather(
        message_service.persist("first", "u1", "u2", "L1", uow_a, listings, clock=ahead),
        message_service.persist("second", "u3", "u2", "L1", uow_b, listings, clock=behind),
    )

    assert second.id > first.id
    assert second.created_at >= first.created_at
    history = await message_service.query_by_topic("L1", uow_a)
    assert [m.text for m in history] == ["first", "second"]


@pytest.mark.asyncio
async def test_retried_send_with_same_client_id_is_stored_once(uow, listings):
    cid = uuid.uuid4()

    first = await message_service.persist("hi", "u1", "u2", "L1", uow, listings, client_msg_id=cid)
    again = await message_service.persist("hi", "u1", "u2", "L1", uow, listings, client_msg_id=cid)

    assert again == first
    assert uow.stored == [first]


@pytest.mark.asyncio
async def test_client_id_is_scoped_to_sender(uow, listings):
    cid = uuid.uuid4()

    mine = await message_service.persist("hi", "u1", "u2", "L1", uow, listings, client_msg_id=cid)
    theirs = await message_service.persist("hi", "u2", "u1", "L1", uow, listings, client_msg_id=cid)

    assert mine.id != theirs.id
    assert len(uow.stored) == 2
