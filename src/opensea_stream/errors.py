"""Exception hierarchy for the stream client."""

from __future__ import annotations

from typing import Any


class StreamError(Exception):
    """Base class for every error raised by opensea_stream."""


class EndpointResolutionImpossible(StreamError):
    """A network selector has no endpoint. Unreachable for Network members."""


class TransportClosed(StreamError):
    """The underlying connection is gone."""


class ChannelClosed(StreamError):
    """The channel was left or its connection closed; no more messages."""


class ConsumerLagged(StreamError):
    """A receiver fell behind and the broadcast overwrote unread messages."""

    def __init__(self, skipped: int) -> None:
        super().__init__(f"receiver lagged behind by {skipped} message(s)")
        self.skipped = skipped


# ── Channel registration ──────────────────────────────────


class ChannelRegistrationError(StreamError):
    """Joining a topic failed."""

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"cannot join {topic!r}: {reason}")
        self.topic = topic
        self.reason = reason


class TransportRejected(ChannelRegistrationError):
    """The server answered the join with an error, or never answered."""

    def __init__(self, topic: str, reason: str, response: Any = None) -> None:
        super().__init__(topic, reason)
        self.response = response


class IncompatibleChannelConfig(ChannelRegistrationError):
    """The topic is already joined on this connection with another config."""


# ── Per-message decoding ──────────────────────────────────


class DecodeError(StreamError):
    """A single message could not be turned into a StreamEvent.

    Never fatal: the channel and its other consumers keep running.
    """

    def __init__(self, discriminator: str, body: Any, reason: str) -> None:
        super().__init__(f"{discriminator}: {reason}")
        self.discriminator = discriminator
        self.body = body
        self.reason = reason


class UnknownDiscriminator(DecodeError):
    """No payload variant is registered for the message's event name."""

    def __init__(self, discriminator: str, body: Any) -> None:
        super().__init__(discriminator, body, "unknown event discriminator")


class MalformedPayload(DecodeError):
    """The body is missing a required field or a field has the wrong type."""
