"""Shared fixtures for opensea_stream tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from opensea_stream.client import StreamClient
from opensea_stream.models.config import StreamConfig
from opensea_stream.topics import Network, resolve

from tests.mocks import MockTransport

TEST_API_KEY = "test-api-key-0123456789abcdef"


# ── Report metadata ───────────────────────────────────────────────


def pytest_configure(config):
    """Add stream endpoints to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Mainnet endpoint"] = resolve(Network.MAINNET)
    meta["Testnet endpoint"] = resolve(Network.TESTNET)


def make_test_config(**overrides) -> StreamConfig:
    """Build a StreamConfig suitable for testing."""
    defaults = dict(
        network=Network.TESTNET,
        api_key=TEST_API_KEY,
        heartbeat_interval=1.0,
        join_timeout=1.0,
        channel_capacity=16,
        log_level="debug",
    )
    defaults.update(overrides)
    return StreamConfig(**defaults)


@pytest.fixture
def test_config():
    """Default StreamConfig for tests."""
    return make_test_config()


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
async def stream(transport, test_config):
    """Connected StreamClient over the mock transport."""
    s = StreamClient(transport, test_config)
    await s.connect()
    yield s
    await s.close()
