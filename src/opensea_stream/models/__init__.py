"""Data models for the stream client."""

from opensea_stream.models.config import ChannelConfig, StreamConfig
from opensea_stream.models.message import Message, TransportMessage
from opensea_stream.models.schema import (
    PAYLOAD_TYPES,
    Account,
    AssetContractCriteria,
    Chain,
    CollectionCriteria,
    CollectionOfferData,
    CollectionRef,
    Item,
    ItemCancelledData,
    ItemListedData,
    ItemMetadataUpdatedData,
    ItemReceivedBidData,
    ItemReceivedOfferData,
    ItemSoldData,
    ItemTransferredData,
    Metadata,
    NftId,
    Payload,
    PaymentToken,
    StreamEvent,
    Trait,
    TraitCriteria,
    TraitOfferData,
    Transaction,
)

__all__ = [
    "ChannelConfig", "StreamConfig",
    "Message", "TransportMessage",
    "PAYLOAD_TYPES", "Payload", "StreamEvent",
    "ItemListedData", "ItemSoldData", "ItemTransferredData",
    "ItemMetadataUpdatedData", "ItemCancelledData",
    "ItemReceivedOfferData", "ItemReceivedBidData",
    "CollectionOfferData", "TraitOfferData",
    "Account", "AssetContractCriteria", "Chain", "CollectionCriteria",
    "CollectionRef", "Item", "Metadata", "NftId", "PaymentToken",
    "Trait", "TraitCriteria", "Transaction",
]
