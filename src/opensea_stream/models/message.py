"""Messages as they come off the transport and as they reach consumers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from opensea_stream.errors import DecodeError
from opensea_stream.models.schema import StreamEvent


@dataclass(frozen=True)
class TransportMessage:
    """One Phoenix frame: topic, event name, untyped body and correlation refs."""

    topic: str
    event: str
    payload: Any
    ref: str | None = None
    join_ref: str | None = None


@dataclass(frozen=True)
class Message:
    """A channel message delivered to every receiver of its topic.

    Exactly one of ``payload`` and ``error`` is set: either the body decoded
    into a StreamEvent, or the reason it did not.
    """

    topic: str
    event: str
    body: Any
    payload: StreamEvent | None = None
    error: DecodeError | None = None

    def into_custom_payload(self) -> StreamEvent | None:
        return self.payload
