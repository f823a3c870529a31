"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from opensea_stream.models.config import StreamConfig
from opensea_stream.topics import Network


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "OPENSEA_STREAM_",
) -> StreamConfig:
    """Load client configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (OPENSEA_STREAM_API_KEY, etc.)
        2. TOML config file
        3. Defaults from StreamConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = StreamConfig()

    # ── Stream section ─────────────────────────────────────
    stream = raw.get("stream", {})
    if v := stream.get("network"):
        cfg.network = Network(v)
    if v := stream.get("api_key"):
        cfg.api_key = str(v)
    if v := stream.get("heartbeat_interval"):
        cfg.heartbeat_interval = float(v)
    if v := stream.get("log_level"):
        cfg.log_level = str(v)

    # ── Channel section ────────────────────────────────────
    channel = raw.get("channel", {})
    if v := channel.get("capacity"):
        cfg.channel_capacity = int(v)
    if v := channel.get("join_timeout"):
        cfg.join_timeout = float(v)

    # ── Environment variable overrides (highest priority) ──
    if key := os.environ.get(f"{env_prefix}API_KEY"):
        cfg.api_key = key
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = Network(net)
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level

    return cfg
