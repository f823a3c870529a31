"""Loading StreamConfig from TOML and the environment."""

from __future__ import annotations

import pytest

from opensea_stream.config import load_config
from opensea_stream.models.config import DEFAULT_CAPACITY, DEFAULT_JOIN_TIMEOUT, ChannelConfig
from opensea_stream.topics import CollectionSlug, Network

ENV_VARS = ("OPENSEA_STREAM_API_KEY", "OPENSEA_STREAM_NETWORK", "OPENSEA_STREAM_LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, text: str):
    path = tmp_path / "stream.toml"
    path.write_text(text)
    return path


def test_defaults_without_file():
    cfg = load_config()
    assert cfg.network is Network.MAINNET
    assert cfg.api_key == ""
    assert cfg.heartbeat_interval == 30.0
    assert cfg.join_timeout == DEFAULT_JOIN_TIMEOUT
    assert cfg.channel_capacity == DEFAULT_CAPACITY
    assert cfg.log_level == "info"


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(tmp_path / "absent.toml")
    assert cfg.network is Network.MAINNET


def test_values_from_toml(tmp_path):
    path = write_config(tmp_path, """
[stream]
network = "testnet"
api_key = "from-file"
heartbeat_interval = 15
log_level = "debug"

[channel]
capacity = 64
join_timeout = 2.5
""")
    cfg = load_config(path)
    assert cfg.network is Network.TESTNET
    assert cfg.api_key == "from-file"
    assert cfg.heartbeat_interval == 15.0
    assert cfg.log_level == "debug"
    assert cfg.channel_capacity == 64
    assert cfg.join_timeout == 2.5


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = write_config(tmp_path, """
[stream]
network = "testnet"
api_key = "from-file"
""")
    monkeypatch.setenv("OPENSEA_STREAM_API_KEY", "from-env")
    monkeypatch.setenv("OPENSEA_STREAM_NETWORK", "mainnet")
    monkeypatch.setenv("OPENSEA_STREAM_LOG_LEVEL", "warning")

    cfg = load_config(path)
    assert cfg.api_key == "from-env"
    assert cfg.network is Network.MAINNET
    assert cfg.log_level == "warning"


def test_custom_env_prefix(monkeypatch):
    monkeypatch.setenv("OS_API_KEY", "prefixed")
    assert load_config(env_prefix="OS_").api_key == "prefixed"


def test_unknown_network_is_rejected(tmp_path):
    path = write_config(tmp_path, '[stream]\nnetwork = "devnet"\n')
    with pytest.raises(ValueError):
        load_config(path)


def test_channel_config_carries_settings(tmp_path):
    path = write_config(tmp_path, "[channel]\ncapacity = 8\njoin_timeout = 3\n")
    channel = load_config(path).channel_config(CollectionSlug("wandernauts"))
    assert channel == ChannelConfig(
        collection=CollectionSlug("wandernauts"), capacity=8, join_timeout=3.0,
    )
    assert channel.params == {}
