"""Configuration models for the stream client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from opensea_stream.topics import Collection, Network

DEFAULT_CAPACITY = 1024
DEFAULT_JOIN_TIMEOUT = 10.0


@dataclass(frozen=True)
class ChannelConfig:
    """How to join one topic. Passed through to the transport unmodified."""

    collection: Collection
    params: dict[str, Any] = field(default_factory=dict)  # phx_join payload
    capacity: int = DEFAULT_CAPACITY  # messages buffered per channel
    join_timeout: float = DEFAULT_JOIN_TIMEOUT  # seconds to wait for phx_reply


@dataclass
class StreamConfig:
    """Complete client configuration."""

    # Connection
    network: Network = Network.MAINNET
    api_key: str = ""  # loaded from env var OPENSEA_STREAM_API_KEY
    heartbeat_interval: float = 30.0  # seconds

    # Channels
    join_timeout: float = DEFAULT_JOIN_TIMEOUT
    channel_capacity: int = DEFAULT_CAPACITY

    # Logging
    log_level: str = "info"

    def channel_config(self, collection: Collection) -> ChannelConfig:
        return ChannelConfig(
            collection=collection,
            capacity=self.channel_capacity,
            join_timeout=self.join_timeout,
        )
