"""PhoenixTransport protocol - the multiplexed connection underneath channels."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from opensea_stream.models.message import TransportMessage


class PhoenixTransport(Protocol):
    """One shared socket carrying many channel topics.

    Implementations own framing, heartbeats and reply correlation. Callers
    only see topics, event names and JSON bodies.
    """

    async def connect(self) -> None:
        """Open the connection."""
        ...

    async def join(
        self, topic: str, params: Mapping[str, Any], timeout: float,
    ) -> Mapping[str, Any]:
        """Join a topic and wait for the server's reply.

        Returns the reply's response body. Raises TransportRejected if the
        server answers with an error or does not answer within ``timeout``.
        """
        ...

    async def leave(self, topic: str, timeout: float) -> None:
        """Leave a previously joined topic."""
        ...

    async def send(self, topic: str, event: str, payload: Any) -> None:
        """Push a message on a topic without waiting for a reply."""
        ...

    async def receive(self) -> TransportMessage:
        """Next inbound channel message. Raises TransportClosed at end of stream."""
        ...

    async def close(self) -> None:
        """Close the connection. Pending receive() calls see TransportClosed."""
        ...
