"""Client construction and channel subscription.

One StreamClient wraps one transport connection. Each joined topic gets a
Broadcast; every subscribe call returns its own Receiver on it. Messages
are decoded once, as they arrive, and the same Message object is handed to
every receiver of the topic.

There is no per-event subscription: a channel carries every event of its
target and consumers filter on ``message.payload.event`` themselves.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from opensea_stream.broadcast import Broadcast, Receiver
from opensea_stream.decoder import decode_message
from opensea_stream.errors import (
    ChannelRegistrationError,
    IncompatibleChannelConfig,
    TransportClosed,
)
from opensea_stream.interfaces.transport import PhoenixTransport
from opensea_stream.models.config import ChannelConfig, StreamConfig
from opensea_stream.models.message import Message, TransportMessage
from opensea_stream.phoenix.serializer import CONTROL_EVENTS, PHX_CLOSE, PHX_ERROR
from opensea_stream.phoenix.socket import AiohttpPhoenixTransport
from opensea_stream.topics import Collection, Network, client_url, encode_topic

log = logging.getLogger(__name__)


@dataclass(eq=False)
class _JoinedChannel:
    config: ChannelConfig
    broadcast: Broadcast[Message]
    ready: asyncio.Event = field(default_factory=asyncio.Event)
    error: ChannelRegistrationError | None = None


class ChannelHandler:
    """Right to leave one joined topic. Leaving is always explicit."""

    def __init__(self, client: StreamClient, topic: str, channel: _JoinedChannel) -> None:
        self._client = client
        self._topic = topic
        self._channel = channel

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def closed(self) -> bool:
        return self._channel.broadcast.closed

    async def close(self) -> None:
        """Leave the topic. Every receiver of it sees ChannelClosed. Idempotent."""
        await self._client._leave(self._topic, self._channel)


class StreamClient:
    """A connection to the stream and the channels joined over it."""

    def __init__(self, transport: PhoenixTransport, config: StreamConfig | None = None) -> None:
        self._transport = transport
        self._config = config or StreamConfig()
        self._channels: dict[str, _JoinedChannel] = {}
        self._dispatcher: asyncio.Task | None = None

    @property
    def config(self) -> StreamConfig:
        return self._config

    @property
    def topics(self) -> list[str]:
        return list(self._channels)

    async def connect(self) -> None:
        await self._transport.connect()
        self._dispatcher = asyncio.create_task(self._dispatch_loop())

    async def channel(self, config: ChannelConfig) -> tuple[ChannelHandler, Receiver[Message]]:
        """Join ``config.collection`` (or reuse the existing join) and attach a receiver."""
        topic = encode_topic(config.collection)

        existing = self._channels.get(topic)
        if existing is not None:
            if existing.config != config:
                raise IncompatibleChannelConfig(topic, "already joined with a different configuration")
            await existing.ready.wait()
            if existing.error is not None:
                raise existing.error
            return ChannelHandler(self, topic, existing), existing.broadcast.subscribe()

        joined = _JoinedChannel(config=config, broadcast=Broadcast(config.capacity))
        self._channels[topic] = joined
        # Attach before joining so nothing sent right after the reply is missed
        receiver = joined.broadcast.subscribe()
        try:
            await self._transport.join(topic, config.params, config.join_timeout)
        except ChannelRegistrationError as exc:
            log.warning("Join of %s rejected: %s", topic, exc.reason)
            joined.error = exc
            self._drop(topic, joined)
            raise
        except BaseException as exc:
            reason = "join cancelled" if isinstance(exc, asyncio.CancelledError) else f"join failed: {exc}"
            joined.error = ChannelRegistrationError(topic, reason)
            self._drop(topic, joined)
            raise
        finally:
            joined.ready.set()

        log.info("Subscribed to %s (%s)", topic, config.collection)
        return ChannelHandler(self, topic, joined), receiver

    async def close(self) -> None:
        """Close every channel and the connection."""
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            await asyncio.gather(self._dispatcher, return_exceptions=True)
            self._dispatcher = None
        self._close_all()
        await self._transport.close()

    async def __aenter__(self) -> StreamClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── Internals ──────────────────────────────────────────

    async def _leave(self, topic: str, channel: _JoinedChannel) -> None:
        if self._channels.get(topic) is not channel:
            return  # already left or closed
        self._drop(topic, channel)
        try:
            await self._transport.leave(topic, channel.config.join_timeout)
        except TransportClosed:
            log.debug("Leave of %s skipped: connection closed", topic)

    def _drop(self, topic: str, channel: _JoinedChannel) -> None:
        if self._channels.get(topic) is channel:
            del self._channels[topic]
        channel.broadcast.close()

    def _close_all(self) -> None:
        for channel in self._channels.values():
            channel.broadcast.close()
        self._channels.clear()

    async def _dispatch_loop(self) -> None:
        try:
            while True:
                raw = await self._transport.receive()
                try:
                    self._route(raw)
                except Exception as exc:
                    log.error("Failed to route %s on %s: %s", raw.event, raw.topic, exc, exc_info=True)
        except TransportClosed:
            log.info("Connection closed, closing %d channel(s)", len(self._channels))
        finally:
            self._close_all()

    def _route(self, raw: TransportMessage) -> None:
        channel = self._channels.get(raw.topic)
        if channel is None:
            log.debug("Dropping %s for unjoined topic %s", raw.event, raw.topic)
            return

        if raw.event in (PHX_CLOSE, PHX_ERROR):
            log.warning("Server closed channel %s (%s)", raw.topic, raw.event)
            self._drop(raw.topic, channel)
            return
        if raw.event in CONTROL_EVENTS:
            return

        channel.broadcast.send(decode_message(raw.topic, raw.event, raw.payload))


async def client(
    network: Network | str,
    token: str,
    config: StreamConfig | None = None,
) -> StreamClient:
    """Connect to the stream for ``network`` using ``token`` as the API key."""
    url = client_url(network, token)
    cfg = config or StreamConfig(network=Network(network), api_key=token)
    transport = AiohttpPhoenixTransport(url, heartbeat_interval=cfg.heartbeat_interval)
    stream = StreamClient(transport, cfg)
    await stream.connect()
    return stream


async def subscribe_to(
    stream: StreamClient, collection: Collection,
) -> tuple[ChannelHandler, Receiver[Message]]:
    """Subscribe to every event of ``collection``."""
    return await stream.channel(stream.config.channel_config(collection))


async def subscribe_to_with_config(
    stream: StreamClient, config: ChannelConfig,
) -> tuple[ChannelHandler, Receiver[Message]]:
    """Subscribe to every event of ``config.collection`` with explicit channel settings."""
    return await stream.channel(config)
