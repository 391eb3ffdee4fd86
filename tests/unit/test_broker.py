from __future__ import annotations

import asyncio

import pytest

from marketplace_chat.infrastructure.bus.broker import LocalBroker
from tests.conftest import make_message


def _drain(sub) -> list:
    items = []
    while not sub._queue.empty():
        item = sub._queue.get_nowait()
        if item is not None:
            items.append(item)
    return items


@pytest.mark.asyncio
async def test_publish_reaches_receiver_and_sender_sessions_only():
    broker = LocalBroker()
    b_tab1 = broker.subscribe("u2")
    b_tab2 = broker.subscribe("u2")
    a_other_tab = broker.subscribe("u1")
    c = broker.subscribe("u3")

    msg = make_message(sender_id="u1", receiver_id="u2")
    await broker.publish(msg)

    assert await asyncio.wait_for(b_tab1.get(), 1) == msg
    assert await asyncio.wait_for(b_tab2.get(), 1) == msg
    assert await asyncio.wait_for(a_other_tab.get(), 1) == msg
    assert _drain(c) == []


@pytest.mark.asyncio
async def test_each_session_gets_one_copy():
    broker = LocalBroker()
    sub = broker.subscribe("u2")

    await broker.publish(make_message(sender_id="u1", receiver_id="u2"))

    assert len(_drain(sub)) == 1


@pytest.mark.asyncio
async def test_no_subscriber_means_event_lost():
    broker = LocalBroker()
    msg = make_message(sender_id="u1", receiver_id="u2")

    assert broker.deliver(msg) == 0

    # A later subscription does not replay.
    late = broker.subscribe("u2")
    assert _drain(late) == []


@pytest.mark.asyncio
async def test_close_releases_subscription():
    broker = LocalBroker()
    sub = broker.subscribe("u2")
    assert broker.subscriber_count("u2") == 1

    sub.close()
    sub.close()

    assert sub.closed
    assert broker.subscriber_count("u2") == 0
    assert broker.deliver(make_message(receiver_id="u2")) == 0


@pytest.mark.asyncio
async def test_context_manager_releases_on_exit():
    broker = LocalBroker()
    async with broker.subscribe("u2") as sub:
        assert broker.subscriber_count("u2") == 1
    assert sub.closed
    assert broker.subscriber_count("u2") == 0


@pytest.mark.asyncio
async def test_iteration_stops_after_close():
    broker = LocalBroker()
    sub = broker.subscribe("u2")
    msg = make_message(receiver_id="u2")
    await broker.publish(msg)

    received = []

    async def consume():
        async for m in sub:
            received.append(m)

    task = asyncio.create_task(consume())
    await asyncio.sleep(0)
    sub.close()
    await asyncio.wait_for(task, 1)

    assert received == [msg]


@pytest.mark.asyncio
async def test_full_buffer_drops_instead_of_blocking():
    broker = LocalBroker(queue_size=2)
    sub = broker.subscribe("u2")

    delivered = [broker.deliver(make_message(receiver_id="u2", sender_id="u1")) for _ in range(3)]

    assert delivered == [1, 1, 0]
    assert len(_drain(sub)) == 2
