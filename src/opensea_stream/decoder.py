"""Turn (discriminator, JSON body) pairs into typed StreamEvents."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from opensea_stream.errors import DecodeError, MalformedPayload, UnknownDiscriminator
from opensea_stream.models.message import Message
from opensea_stream.models.schema import PAYLOAD_TYPES, Envelope, StreamEvent
from opensea_stream.topics import parse_event

log = logging.getLogger(__name__)


def _reason(exc: ValidationError) -> str:
    """First validation failure as ``dotted.path: message``."""
    errors = exc.errors()
    first = errors[0]
    where = ".".join(str(part) for part in first["loc"])
    reason = f"{where}: {first['msg']}" if where else first["msg"]
    if len(errors) > 1:
        reason += f" (+{len(errors) - 1} more)"
    return reason


def decode(discriminator: str, body: Any) -> StreamEvent:
    """Decode one message body against the variant its discriminator names.

    Raises UnknownDiscriminator when no variant is registered (this includes
    the subscribe-only wildcard), and MalformedPayload when the body does not
    fit the variant.
    """
    event = parse_event(discriminator)
    if event is None:
        raise UnknownDiscriminator(discriminator, body)

    try:
        envelope = Envelope.model_validate(body)
    except ValidationError as exc:
        raise MalformedPayload(discriminator, body, _reason(exc)) from exc
    if envelope.event_type is not None and envelope.event_type != discriminator:
        raise MalformedPayload(
            discriminator, body,
            f"event_type {envelope.event_type!r} does not match the message event",
        )

    try:
        payload = PAYLOAD_TYPES[event].model_validate(envelope.payload)
    except ValidationError as exc:
        raise MalformedPayload(discriminator, body, _reason(exc)) from exc
    return StreamEvent(event=event, sent_at=envelope.sent_at, payload=payload)


def try_decode(discriminator: str, body: Any) -> StreamEvent | DecodeError:
    """Like decode(), but returns the error instead of raising it."""
    try:
        return decode(discriminator, body)
    except DecodeError as exc:
        return exc


def decode_message(topic: str, discriminator: str, body: Any) -> Message:
    """Build the Message handed to consumers, logging any decode problem."""
    result = try_decode(discriminator, body)
    if isinstance(result, StreamEvent):
        return Message(topic=topic, event=discriminator, body=body, payload=result)

    if isinstance(result, UnknownDiscriminator):
        log.debug("Unrecognized event %r on %s", discriminator, topic)
    else:
        log.warning("Malformed %s message on %s: %s", discriminator, topic, result.reason)
    return Message(topic=topic, event=discriminator, body=body, error=result)
