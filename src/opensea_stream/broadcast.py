"""Bounded single-producer, many-consumer broadcast.

All receivers share one ring of the last ``capacity`` values. A receiver
that falls further behind than that does not block the producer or the
other receivers: its next recv() raises ConsumerLagged with the number of
values it missed, then continues from the oldest value still retained.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Generic, TypeVar

from opensea_stream.errors import ChannelClosed, ConsumerLagged

log = logging.getLogger(__name__)

T = TypeVar("T")


class Broadcast(Generic[T]):
    """Fan one stream of values out to any number of Receivers."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("broadcast capacity must be at least 1")
        self._capacity = capacity
        self._buffer: deque[T] = deque(maxlen=capacity)
        self._tail = 0  # sequence number of the next value sent
        self._closed = False
        self._receivers = 0
        self._waiter: asyncio.Future[None] | None = None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def receiver_count(self) -> int:
        return self._receivers

    def subscribe(self) -> Receiver[T]:
        """New receiver that sees every value sent from now on."""
        self._receivers += 1
        return Receiver(self, self._tail)

    def send(self, value: T) -> int:
        """Publish a value. Returns the number of attached receivers."""
        if self._closed:
            raise ChannelClosed("broadcast is closed")
        self._buffer.append(value)
        self._tail += 1
        self._wake()
        return self._receivers

    def close(self) -> None:
        """Stop accepting values. Receivers drain the buffer, then see ChannelClosed."""
        if not self._closed:
            self._closed = True
            self._wake()

    def _head(self) -> int:
        return self._tail - len(self._buffer)

    def _wake(self) -> None:
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

    async def _wait(self) -> None:
        if self._waiter is None:
            self._waiter = asyncio.get_running_loop().create_future()
        # Shielded so one cancelled receiver does not cancel the shared waiter
        await asyncio.shield(self._waiter)


class Receiver(Generic[T]):
    """One consumer's independent view of a Broadcast."""

    def __init__(self, channel: Broadcast[T], position: int) -> None:
        self._channel = channel
        self._position = position
        self._attached = True

    def try_recv(self) -> tuple[bool, T | None]:
        """Non-blocking receive. Returns (False, None) if nothing is ready."""
        if not self._attached:
            raise ChannelClosed("receiver closed")
        channel = self._channel
        head = channel._head()
        if self._position < head:
            skipped = head - self._position
            self._position = head
            log.debug("Receiver lagged, skipping %d value(s)", skipped)
            raise ConsumerLagged(skipped)
        if self._position < channel._tail:
            value = channel._buffer[self._position - head]
            self._position += 1
            return True, value
        if channel._closed:
            raise ChannelClosed("channel closed")
        return False, None

    async def recv(self) -> T:
        """Wait for the next value."""
        while True:
            ready, value = self.try_recv()
            if ready:
                return value  # type: ignore[return-value]
            await self._channel._wait()

    def resubscribe(self) -> Receiver[T]:
        """A fresh receiver on the same broadcast, starting at the newest value."""
        return self._channel.subscribe()

    def close(self) -> None:
        """Detach this consumer. Other receivers are unaffected."""
        if self._attached:
            self._attached = False
            self._channel._receivers -= 1

    def __aiter__(self) -> Receiver[T]:
        return self

    async def __anext__(self) -> T:
        """Next value. Stops at closure, but ConsumerLagged still propagates."""
        try:
            return await self.recv()
        except ChannelClosed:
            raise StopAsyncIteration from None
