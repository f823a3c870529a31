"""Networks, subscription targets and event names, and their wire encodings.

Topic grammar::

    collection:*                    every collection on the network
    collection:<slug>               one collection, slug used verbatim
    contract:<chain>:<address>      one contract on one chain

Inputs are not validated here. An empty slug or a malformed address is
sent as-is and the server decides what to do with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from opensea_stream.errors import EndpointResolutionImpossible


class Network(str, Enum):
    """Which stream deployment to connect to."""

    MAINNET = "mainnet"
    TESTNET = "testnet"


_ENDPOINTS = {
    Network.MAINNET: "wss://stream.openseabeta.com/socket/websocket",
    Network.TESTNET: "wss://testnets-stream.openseabeta.com/socket/websocket",
}


def resolve(network: Network | str) -> str:
    """Return the websocket endpoint for a network, without credentials."""
    try:
        return _ENDPOINTS[Network(network)]
    except (KeyError, ValueError):
        raise EndpointResolutionImpossible(f"no endpoint for network {network!r}") from None


def client_url(network: Network | str, token: str) -> str:
    """Endpoint URL with the API key attached as the ``token`` query parameter."""
    parts = urlsplit(resolve(network))
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "token"]
    query.append(("token", token))
    return urlunsplit(parts._replace(query=urlencode(query)))


# ── Subscription targets ──────────────────────────────────

COLLECTION_PREFIX = "collection"
CONTRACT_PREFIX = "contract"
ALL_TOPIC = f"{COLLECTION_PREFIX}:*"


class Collection:
    """A subscription target. One of the three subclasses below."""

    __slots__ = ()

    @property
    def topic(self) -> str:
        return encode_topic(self)


@dataclass(frozen=True)
class AllCollections(Collection):
    """Every collection on the network."""

    def __str__(self) -> str:
        return "all collections"


@dataclass(frozen=True)
class CollectionSlug(Collection):
    """A single collection identified by its slug, e.g. ``wandernauts``."""

    slug: str

    def __str__(self) -> str:
        return self.slug


@dataclass(frozen=True)
class ContractAddress(Collection):
    """A single contract on a single chain."""

    chain: str
    address: str

    def __str__(self) -> str:
        return f"{self.chain}:{self.address}"


ALL_COLLECTIONS = AllCollections()


def encode_topic(collection: Collection) -> str:
    """Channel topic for a subscription target."""
    if isinstance(collection, AllCollections):
        return ALL_TOPIC
    if isinstance(collection, CollectionSlug):
        return f"{COLLECTION_PREFIX}:{collection.slug}"
    if isinstance(collection, ContractAddress):
        return f"{CONTRACT_PREFIX}:{collection.chain}:{collection.address}"
    raise TypeError(f"not a subscription target: {collection!r}")


# ── Event names ───────────────────────────────────────────


class Event(str, Enum):
    """Message discriminators emitted on a channel.

    ``ALL`` is a subscribe-time wildcard only. It never names a payload.
    """

    ITEM_LISTED = "item_listed"
    ITEM_SOLD = "item_sold"
    ITEM_TRANSFERRED = "item_transferred"
    ITEM_METADATA_UPDATED = "item_metadata_updated"
    ITEM_CANCELLED = "item_cancelled"
    ITEM_RECEIVED_OFFER = "item_received_offer"
    ITEM_RECEIVED_BID = "item_received_bid"
    COLLECTION_OFFER = "collection_offer"
    TRAIT_OFFER = "trait_offer"
    ALL = "*"


PAYLOAD_EVENTS = tuple(e for e in Event if e is not Event.ALL)


def encode_event(event: Event) -> str:
    """Wire discriminator for an event kind."""
    return Event(event).value


def parse_event(discriminator: str) -> Event | None:
    """Event kind for a received discriminator, or None if it names no payload."""
    try:
        event = Event(discriminator)
    except ValueError:
        return None
    if event is Event.ALL:
        return None
    return event
