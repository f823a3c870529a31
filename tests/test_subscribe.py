"""Joining topics and fanning decoded messages out to receivers."""

from __future__ import annotations

import asyncio

import pytest

from opensea_stream.client import StreamClient, subscribe_to, subscribe_to_with_config
from opensea_stream.errors import (
    ChannelClosed,
    ChannelRegistrationError,
    ConsumerLagged,
    IncompatibleChannelConfig,
    MalformedPayload,
    TransportRejected,
    UnknownDiscriminator,
)
from opensea_stream.models.config import ChannelConfig
from opensea_stream.models.schema import ItemListedData, ItemSoldData
from opensea_stream.topics import ALL_COLLECTIONS, CollectionSlug, ContractAddress, Event

from tests.conftest import make_test_config
from tests.factories import CONTRACT, make_body, make_item_listed
from tests.mocks import MockTransport

SLUG = CollectionSlug("wandernauts")
TOPIC = "collection:wandernauts"


async def settle() -> None:
    """Let the dispatcher drain whatever the transport has queued."""
    for _ in range(5):
        await asyncio.sleep(0)


async def next_message(receiver):
    return await asyncio.wait_for(receiver.recv(), 1.0)


# ── Test 1: joining ───────────────────────────────────────────────


async def test_subscribe_joins_encoded_topic(stream, transport):
    handler, _ = await subscribe_to(stream, SLUG)
    assert handler.topic == TOPIC
    assert transport.joins == [(TOPIC, {})]
    assert stream.topics == [TOPIC]


async def test_subscribe_with_config_passes_params(stream, transport):
    config = ChannelConfig(collection=ALL_COLLECTIONS, params={"filter": "x"}, capacity=4)
    handler, _ = await subscribe_to_with_config(stream, config)
    assert handler.topic == "collection:*"
    assert transport.joins == [("collection:*", {"filter": "x"})]


async def test_contract_topic(stream, transport):
    await subscribe_to(stream, ContractAddress("ethereum", CONTRACT))
    assert transport.joins[0][0] == f"contract:ethereum:{CONTRACT}"


# ── Test 2: delivery ──────────────────────────────────────────────


async def test_messages_are_decoded(stream, transport):
    _, rx = await subscribe_to(stream, SLUG)
    body = make_body(Event.ITEM_LISTED)
    transport.inject(TOPIC, "item_listed", body)

    message = await next_message(rx)
    assert message.topic == TOPIC
    assert message.event == "item_listed"
    assert message.body == body
    event = message.into_custom_payload()
    assert event.event is Event.ITEM_LISTED
    assert isinstance(event.payload, ItemListedData)


async def test_every_event_of_the_target_is_delivered(stream, transport):
    """No per-event subscription: the consumer sees the whole channel."""
    _, rx = await subscribe_to(stream, SLUG)
    transport.inject(TOPIC, "item_listed", make_body(Event.ITEM_LISTED))
    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))

    kinds = [type((await next_message(rx)).payload.payload) for _ in range(2)]
    assert kinds == [ItemListedData, ItemSoldData]


async def test_second_subscription_shares_the_join(stream, transport):
    h1, first = await subscribe_to(stream, SLUG)
    h2, second = await subscribe_to(stream, SLUG)
    assert transport.joins == [(TOPIC, {})]
    assert h1.topic == h2.topic

    for price in ("1", "2", "3"):
        transport.inject(TOPIC, "item_listed", make_body(
            Event.ITEM_LISTED, make_item_listed(base_price=price),
        ))

    prices_a = [(await next_message(first)).payload.payload.base_price for _ in range(3)]
    prices_b = [(await next_message(second)).payload.payload.base_price for _ in range(3)]
    assert prices_a == prices_b == ["1", "2", "3"]


async def test_other_topics_are_isolated(stream, transport):
    _, rx = await subscribe_to(stream, SLUG)
    transport.inject("collection:other", "item_listed", make_body(Event.ITEM_LISTED))
    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))

    message = await next_message(rx)
    assert message.event == "item_sold"
    assert rx.try_recv() == (False, None)


async def test_control_events_are_not_delivered(stream, transport):
    _, rx = await subscribe_to(stream, SLUG)
    transport.inject(TOPIC, "phx_reply", {"status": "ok", "response": {}})
    transport.inject("phoenix", "phx_reply", {"status": "ok", "response": {}})
    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))

    assert (await next_message(rx)).event == "item_sold"


# ── Test 3: bad messages ──────────────────────────────────────────


async def test_bad_messages_do_not_stop_the_channel(stream, transport):
    _, first = await subscribe_to(stream, SLUG)
    _, second = await subscribe_to(stream, SLUG)

    transport.inject(TOPIC, "item_listed", {"event_type": "item_listed", "payload": {}})
    transport.inject(TOPIC, "order_invalidate", {"payload": {}})
    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))

    for rx in (first, second):
        malformed = await next_message(rx)
        assert malformed.payload is None
        assert isinstance(malformed.error, MalformedPayload)
        assert malformed.error.discriminator == "item_listed"

        unknown = await next_message(rx)
        assert isinstance(unknown.error, UnknownDiscriminator)

        good = await next_message(rx)
        assert good.error is None
        assert isinstance(good.payload.payload, ItemSoldData)


# ── Test 4: rejected joins ────────────────────────────────────────


async def test_rejected_join_raises_and_can_be_retried(test_config):
    transport = MockTransport(reject={TOPIC: "unauthorized"})
    stream = StreamClient(transport, test_config)
    await stream.connect()
    try:
        with pytest.raises(TransportRejected) as exc_info:
            await subscribe_to(stream, SLUG)
        assert exc_info.value.topic == TOPIC
        assert exc_info.value.reason == "unauthorized"
        assert stream.topics == []

        del transport._reject[TOPIC]
        handler, _ = await subscribe_to(stream, SLUG)
        assert not handler.closed
        assert len(transport.joins) == 2
    finally:
        await stream.close()


async def test_incompatible_config_is_rejected(stream, transport):
    await subscribe_to(stream, SLUG)
    other = ChannelConfig(collection=SLUG, params={"since": 1})
    with pytest.raises(IncompatibleChannelConfig) as exc_info:
        await subscribe_to_with_config(stream, other)
    assert exc_info.value.topic == TOPIC
    assert len(transport.joins) == 1


async def test_equal_config_is_reused(stream, transport):
    config = stream.config.channel_config(SLUG)
    await subscribe_to_with_config(stream, config)
    await subscribe_to_with_config(stream, ChannelConfig(
        collection=CollectionSlug("wandernauts"),
        capacity=config.capacity,
        join_timeout=config.join_timeout,
    ))
    assert len(transport.joins) == 1


# ── Test 5: leaving ───────────────────────────────────────────────


async def test_handler_close_leaves_once(stream, transport):
    handler, first = await subscribe_to(stream, SLUG)
    other_handler, second = await subscribe_to(stream, SLUG)

    await handler.close()
    await handler.close()
    await other_handler.close()

    assert transport.leaves == [TOPIC]
    assert handler.closed
    assert stream.topics == []
    for rx in (first, second):
        with pytest.raises(ChannelClosed):
            await next_message(rx)


async def test_messages_after_leave_are_dropped(stream, transport):
    handler, rx = await subscribe_to(stream, SLUG)
    await handler.close()
    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))
    await settle()
    with pytest.raises(ChannelClosed):
        rx.try_recv()


async def test_resubscribe_after_leave_joins_again(stream, transport):
    handler, _ = await subscribe_to(stream, SLUG)
    await handler.close()
    fresh, rx = await subscribe_to(stream, SLUG)
    assert len(transport.joins) == 2
    assert not fresh.closed

    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))
    assert (await next_message(rx)).event == "item_sold"


async def test_receiver_close_does_not_leave(stream, transport):
    handler, first = await subscribe_to(stream, SLUG)
    _, second = await subscribe_to(stream, SLUG)
    first.close()

    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))
    assert (await next_message(second)).event == "item_sold"
    assert transport.leaves == []
    assert not handler.closed


async def test_server_close_ends_channel(stream, transport):
    handler, rx = await subscribe_to(stream, SLUG)
    transport.inject(TOPIC, "item_sold", make_body(Event.ITEM_SOLD))
    transport.inject(TOPIC, "phx_close", {})

    assert (await next_message(rx)).event == "item_sold"
    with pytest.raises(ChannelClosed):
        await next_message(rx)
    assert handler.closed

    await handler.close()
    assert transport.leaves == []


async def test_connection_drop_closes_every_channel(stream, transport):
    _, a = await subscribe_to(stream, SLUG)
    _, b = await subscribe_to(stream, ALL_COLLECTIONS)
    transport.drop_connection()

    for rx in (a, b):
        with pytest.raises(ChannelClosed):
            await next_message(rx)
    assert stream.topics == []


async def test_client_close_closes_channels(transport, test_config):
    async with StreamClient(transport, test_config) as stream:
        await stream.connect()
        handler, rx = await subscribe_to(stream, SLUG)
    assert handler.closed
    assert not transport.connected
    with pytest.raises(ChannelClosed):
        rx.try_recv()


# ── Test 6: lag ───────────────────────────────────────────────────


async def test_slow_consumer_lags_through_the_client(transport):
    stream = StreamClient(transport, make_test_config(channel_capacity=2))
    await stream.connect()
    try:
        _, rx = await subscribe_to(stream, SLUG)
        for price in ("1", "2", "3", "4", "5"):
            transport.inject(TOPIC, "item_listed", make_body(
                Event.ITEM_LISTED, make_item_listed(base_price=price),
            ))
        await settle()

        with pytest.raises(ConsumerLagged) as exc_info:
            rx.try_recv()
        assert exc_info.value.skipped == 3
        assert (await next_message(rx)).payload.payload.base_price == "4"
        assert (await next_message(rx)).payload.payload.base_price == "5"
    finally:
        await stream.close()


# ── Test 7: concurrent joins ──────────────────────────────────────


async def test_cancelled_join_fails_waiting_subscribers(test_config):
    transport = MockTransport(join_delay=0.1)
    stream = StreamClient(transport, test_config)
    await stream.connect()
    try:
        first = asyncio.create_task(subscribe_to(stream, SLUG))
        await settle()
        second = asyncio.create_task(subscribe_to(stream, SLUG))
        await settle()

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        with pytest.raises(ChannelRegistrationError) as exc_info:
            await second
        assert exc_info.value.reason == "join cancelled"
        assert stream.topics == []

        handler, _ = await subscribe_to(stream, SLUG)
        assert not handler.closed
        assert len(transport.joins) == 2
    finally:
        await stream.close()
