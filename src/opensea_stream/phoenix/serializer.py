"""Phoenix V1 JSON framing: one object per websocket text frame."""

from __future__ import annotations

import json

from opensea_stream.models.message import TransportMessage

PHOENIX_TOPIC = "phoenix"
HEARTBEAT = "heartbeat"
PHX_JOIN = "phx_join"
PHX_LEAVE = "phx_leave"
PHX_REPLY = "phx_reply"
PHX_CLOSE = "phx_close"
PHX_ERROR = "phx_error"

CONTROL_EVENTS = frozenset({PHX_JOIN, PHX_LEAVE, PHX_REPLY, PHX_CLOSE, PHX_ERROR})


def encode(message: TransportMessage) -> str:
    return json.dumps({
        "topic": message.topic,
        "event": message.event,
        "payload": message.payload,
        "ref": message.ref,
        "join_ref": message.join_ref,
    })


def decode(frame: str | bytes) -> TransportMessage:
    """Parse one frame. Raises ValueError if it is not a Phoenix message."""
    raw = json.loads(frame)
    if not isinstance(raw, dict):
        raise ValueError("frame is not a JSON object")
    topic, event = raw.get("topic"), raw.get("event")
    if not isinstance(topic, str) or not isinstance(event, str):
        raise ValueError("frame has no topic/event")
    ref, join_ref = raw.get("ref"), raw.get("join_ref")
    return TransportMessage(
        topic=topic,
        event=event,
        payload=raw.get("payload"),
        ref=None if ref is None else str(ref),
        join_ref=None if join_ref is None else str(join_ref),
    )
