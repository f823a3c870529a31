"""Receive real-time marketplace events from the OpenSea Stream API.

A thin layer over a Phoenix channel connection: it maps networks and
subscription targets to endpoints and topics, decodes event bodies into
typed payloads, and fans each channel out to any number of receivers.

    stream = await client(Network.MAINNET, "YOUR_API_KEY")
    handler, subscription = await subscribe_to(stream, CollectionSlug("wandernauts"))
    while True:
        try:
            message = await subscription.recv()
        except ConsumerLagged:
            continue  # some messages were dropped, carry on from the oldest kept
        except ChannelClosed:
            break
        event = message.into_custom_payload()
        if event is not None and event.event is Event.ITEM_LISTED:
            print(event.payload)

Events carrying non-EVM (e.g. Solana) addresses are not supported and
surface as malformed payloads.
"""

from opensea_stream.broadcast import Broadcast, Receiver
from opensea_stream.client import (
    ChannelHandler,
    StreamClient,
    client,
    subscribe_to,
    subscribe_to_with_config,
)
from opensea_stream.decoder import decode, try_decode
from opensea_stream.errors import (
    ChannelClosed,
    ChannelRegistrationError,
    ConsumerLagged,
    DecodeError,
    EndpointResolutionImpossible,
    IncompatibleChannelConfig,
    MalformedPayload,
    StreamError,
    TransportClosed,
    TransportRejected,
    UnknownDiscriminator,
)
from opensea_stream.models import schema
from opensea_stream.models.config import ChannelConfig, StreamConfig
from opensea_stream.models.message import Message
from opensea_stream.models.schema import StreamEvent
from opensea_stream.topics import (
    ALL_COLLECTIONS,
    AllCollections,
    Collection,
    CollectionSlug,
    ContractAddress,
    Event,
    Network,
    client_url,
    encode_event,
    encode_topic,
    parse_event,
    resolve,
)

__all__ = [
    "client", "subscribe_to", "subscribe_to_with_config",
    "StreamClient", "ChannelHandler", "ChannelConfig", "StreamConfig",
    "Broadcast", "Receiver", "Message",
    "decode", "try_decode", "schema", "StreamEvent",
    "Network", "Collection", "AllCollections", "CollectionSlug",
    "ContractAddress", "ALL_COLLECTIONS", "Event",
    "resolve", "client_url", "encode_topic", "encode_event", "parse_event",
    "StreamError", "EndpointResolutionImpossible", "ChannelRegistrationError",
    "TransportRejected", "IncompatibleChannelConfig", "DecodeError",
    "UnknownDiscriminator", "MalformedPayload",
    "ConsumerLagged", "ChannelClosed", "TransportClosed",
]
