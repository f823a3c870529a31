"""Payload schema for events received from the stream.

Every message body has the shape::

    {"event_type": "item_listed", "sent_at": "...", "payload": {...}}

and the inner ``payload`` object is validated into the model registered for
its event kind in ``PAYLOAD_TYPES``. Unknown keys are ignored at every
level. Missing required keys and wrongly typed values raise
``pydantic.ValidationError``.

Value conventions:
    amounts      decimal text, e.g. "1000000000000000000" (ints are converted)
    addresses    EVM hex, "0x" + 40 hex digits. Only the shape is checked:
                 the EIP-55 checksum is not verified and the text is kept
                 exactly as received, in whatever case the server sent.
    timestamps   ISO 8601 text, checked but not converted
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_serializer,
    model_validator,
)

from opensea_stream.topics import Event

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------


def _evm_address(value: str) -> str:
    if not _ADDRESS_RE.match(value):
        raise ValueError(f"{value!r} is not an EVM address")
    return value


def _iso8601(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"{value!r} is not an ISO 8601 timestamp") from None
    return value


def _decimal_text(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"{value!r} is not a decimal amount")
    text = value if isinstance(value, str) else str(value)
    try:
        number = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"{value!r} is not a decimal amount") from None
    if not number.is_finite():
        raise ValueError(f"{value!r} is not a finite amount")
    return text


def _not_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("expected an integer, got a boolean")
    return value


Address = Annotated[str, AfterValidator(_evm_address)]
Timestamp = Annotated[str, AfterValidator(_iso8601)]
Amount = Annotated[str, BeforeValidator(_decimal_text)]
Quantity = Annotated[int, BeforeValidator(_not_bool)]
Scalar = Union[StrictStr, StrictInt, StrictFloat]


class Record(BaseModel):
    """Base of every wire record: immutable, tolerant of unknown keys."""

    model_config = ConfigDict(frozen=True, extra="ignore")


# ---------------------------------------------------------------------------
# Shared records
# ---------------------------------------------------------------------------


class Account(Record):
    address: Address


class Chain(Record):
    name: str  # "ethereum", "matic", ...


class CollectionRef(Record):
    """The collection an event belongs to."""

    slug: str


class NftId(Record):
    """Token identity. Wire form is ``chain/contract_address/token_id``."""

    chain: str
    address: Address
    token_id: str

    @model_validator(mode="before")
    @classmethod
    def split_wire_form(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        parts = value.split("/")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"malformed nft id: {value!r}")
        return dict(zip(("chain", "address", "token_id"), parts))

    @model_serializer
    def join_wire_form(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"{self.chain}/{self.address}/{self.token_id}"


class Trait(Record):
    trait_type: str
    value: Scalar
    display_type: Optional[str] = None
    max_value: Optional[Scalar] = None
    trait_count: Optional[Quantity] = None


class Metadata(Record):
    """Item metadata. Any field may be absent."""

    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    animation_url: Optional[str] = None
    metadata_url: Optional[str] = None
    traits: tuple[Trait, ...] = ()

    @field_validator("traits", mode="before")
    @classmethod
    def traits_or_empty(cls, value: Any) -> Any:
        return () if value is None else value


class Item(Record):
    nft_id: NftId
    chain: Chain
    permalink: str
    metadata: Metadata = Field(default_factory=Metadata)

    @field_validator("metadata", mode="before")
    @classmethod
    def metadata_or_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class PaymentToken(Record):
    address: Address
    symbol: str
    decimals: Quantity
    name: Optional[str] = None
    eth_price: Optional[Amount] = None
    usd_price: Optional[Amount] = None


class Transaction(Record):
    hash: str
    timestamp: Timestamp


class AssetContractCriteria(Record):
    address: Address


class CollectionCriteria(Record):
    slug: str


class TraitCriteria(Record):
    trait_type: str
    trait_name: str


# ---------------------------------------------------------------------------
# Payload variants
# ---------------------------------------------------------------------------


class ItemListedData(Record):
    """An item was listed for sale."""

    event_timestamp: Timestamp
    collection: CollectionRef
    item: Item
    base_price: Amount
    expiration_date: Timestamp
    listing_date: Timestamp
    is_private: StrictBool
    maker: Account
    payment_token: PaymentToken
    quantity: Quantity
    listing_type: Optional[str] = None  # "dutch", "english" or None for fixed price
    taker: Optional[Account] = None
    order_hash: Optional[str] = None


class ItemSoldData(Record):
    """An item was sold."""

    event_timestamp: Timestamp
    collection: CollectionRef
    item: Item
    closing_date: Timestamp
    is_private: StrictBool
    maker: Account
    taker: Account
    payment_token: PaymentToken
    quantity: Quantity
    sale_price: Amount
    transaction: Transaction
    listing_type: Optional[str] = None
    order_hash: Optional[str] = None


class ItemTransferredData(Record):
    """An item moved between accounts."""

    event_timestamp: Timestamp
    collection: CollectionRef
    item: Item
    from_account: Account
    to_account: Account
    quantity: Quantity
    transaction: Transaction


class ItemMetadataUpdatedData(Record):
    """An item's metadata (name, image, traits) changed."""

    collection: CollectionRef
    item: Item
    event_timestamp: Optional[Timestamp] = None


class ItemCancelledData(Record):
    """A listing was cancelled."""

    event_timestamp: Timestamp
    collection: CollectionRef
    item: Item
    payment_token: PaymentToken
    quantity: Quantity
    transaction: Transaction
    listing_type: Optional[str] = None
    order_hash: Optional[str] = None


class _ItemOffer(Record):
    event_timestamp: Timestamp
    collection: CollectionRef
    item: Item
    base_price: Amount
    created_date: Timestamp
    expiration_date: Timestamp
    maker: Account
    payment_token: PaymentToken
    quantity: Quantity
    taker: Optional[Account] = None
    order_hash: Optional[str] = None


class ItemReceivedOfferData(_ItemOffer):
    """An offer was made on a single item."""


class ItemReceivedBidData(_ItemOffer):
    """A bid was placed on an item in an auction."""


class _CriteriaOffer(Record):
    event_timestamp: Timestamp
    collection: CollectionRef
    base_price: Amount
    created_date: Timestamp
    expiration_date: Timestamp
    maker: Account
    payment_token: PaymentToken
    quantity: Quantity
    asset_contract_criteria: AssetContractCriteria
    collection_criteria: Optional[CollectionCriteria] = None
    taker: Optional[Account] = None
    order_hash: Optional[str] = None
    protocol_address: Optional[Address] = None
    protocol_data: Optional[dict[str, Any]] = None


class CollectionOfferData(_CriteriaOffer):
    """An offer on any item of a collection."""


class TraitOfferData(_CriteriaOffer):
    """An offer on any item of a collection carrying a given trait."""

    trait_criteria: TraitCriteria


Payload = Union[
    ItemListedData,
    ItemSoldData,
    ItemTransferredData,
    ItemMetadataUpdatedData,
    ItemCancelledData,
    ItemReceivedOfferData,
    ItemReceivedBidData,
    CollectionOfferData,
    TraitOfferData,
]

PAYLOAD_TYPES: dict[Event, type[Record]] = {
    Event.ITEM_LISTED: ItemListedData,
    Event.ITEM_SOLD: ItemSoldData,
    Event.ITEM_TRANSFERRED: ItemTransferredData,
    Event.ITEM_METADATA_UPDATED: ItemMetadataUpdatedData,
    Event.ITEM_CANCELLED: ItemCancelledData,
    Event.ITEM_RECEIVED_OFFER: ItemReceivedOfferData,
    Event.ITEM_RECEIVED_BID: ItemReceivedBidData,
    Event.COLLECTION_OFFER: CollectionOfferData,
    Event.TRAIT_OFFER: TraitOfferData,
}


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class Envelope(Record):
    """Outer message body, before the payload is matched to its variant."""

    event_type: Optional[str] = None
    sent_at: Timestamp
    payload: dict[str, Any]


@dataclass(frozen=True)
class StreamEvent:
    """A decoded message: event kind, send time and the matching payload."""

    event: Event
    sent_at: str
    payload: Payload

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES.get(self.event)
        if expected is None or type(self.payload) is not expected:
            raise TypeError(
                f"{type(self.payload).__name__} is not the payload of {self.event.value!r}"
            )

    @property
    def discriminator(self) -> str:
        return self.event.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event.value,
            "sent_at": self.sent_at,
            "payload": self.payload.model_dump(mode="json"),
        }
