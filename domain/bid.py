"""
Domain: Bid entity and its value objects.

Rules implemented here:
- A Bid is a single offer by a buyer on a seller's product listing.
- bid_id, product_id, buyer_id and seller_id never change after creation.
- amount > 0 and quantity > 0 at all times (also for counter offers).
- counter_offer is present iff status == countered.
- Terminal states (accepted, rejected, expired, withdrawn) never change again.
- Timestamps are UTC.

Bids are frozen: every transition produces a new snapshot. Version numbers
are owned by the store, not by this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp

SYSTEM_ACTOR = "system"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"

    @property
    def is_active(self) -> bool:
        return self in (BidStatus.PENDING, BidStatus.COUNTERED)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


class BidAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    COUNTER = "counter"
    WITHDRAW = "withdraw"
    EXPIRE = "expire"


class PartyRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"

    @property
    def opposite(self) -> "PartyRole":
        return PartyRole.SELLER if self is PartyRole.BUYER else PartyRole.BUYER


class BuyerType(str, Enum):
    B2B = "B2B"
    B2C = "B2C"


class Language(str, Enum):
    """Languages the marketplace translates bid messages between."""

    HINDI = "hindi"
    TAMIL = "tamil"
    TELUGU = "telugu"
    KANNADA = "kannada"
    BENGALI = "bengali"
    ODIA = "odia"
    MALAYALAM = "malayalam"
    ENGLISH = "english"


def is_positive_amount(value: object) -> bool:
    return isinstance(value, Decimal) and value.is_finite() and value > 0


def is_positive_quantity(value: object) -> bool:
    # bool is an int subclass; True is not a quantity.
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True, slots=True)
class BidMessage:
    """
    Free text attached to a bid or a response.

    `translated` and `confidence` are whatever the translation collaborator
    returned. They are stored verbatim and never inspected.
    """

    original: str
    translated: Optional[str] = None
    source_lang: Optional[Language] = None
    target_lang: Optional[Language] = None
    confidence: Optional[float] = None


@dataclass(frozen=True, slots=True)
class CounterOffer:
    amount: Decimal
    quantity: int
    created_at: datetime
    offered_by: PartyRole
    message: Optional[BidMessage] = None

    def __post_init__(self) -> None:
        if not is_positive_amount(self.amount):
            raise ValueError("counter offer amount must be a positive Decimal")
        if not is_positive_quantity(self.quantity):
            raise ValueError("counter offer quantity must be a positive int")
        require_utc_timestamp("counter_offer.created_at", self.created_at)


@dataclass(frozen=True, slots=True)
class Bid:
    """
    Immutable snapshot of a bid.

    Callers never hold a reference into storage; stores hand out these
    snapshots and accept new ones through compare-and-swap writes.
    """

    bid_id: UUID
    product_id: str
    buyer_id: str
    seller_id: str
    amount: Decimal
    quantity: int
    status: BidStatus
    created_at: datetime
    updated_at: datetime
    version: int = 1
    buyer_type: BuyerType = BuyerType.B2C
    message: Optional[BidMessage] = None
    counter_offer: Optional[CounterOffer] = None
    response_message: Optional[BidMessage] = None

    def __post_init__(self) -> None:
        if not is_positive_amount(self.amount):
            raise ValueError("amount must be a positive Decimal")
        if not is_positive_quantity(self.quantity):
            raise ValueError("quantity must be a positive int")
        if self.version < 1:
            raise ValueError("version must be >= 1")
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if (self.status is BidStatus.COUNTERED) != (self.counter_offer is not None):
            raise ValueError("counter_offer must be set iff status is countered")

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def effective_amount(self) -> Decimal:
        """Amount currently on the table: the counter if one is open."""

        if self.counter_offer is not None:
            return self.counter_offer.amount
        return self.amount

    @property
    def effective_quantity(self) -> int:
        if self.counter_offer is not None:
            return self.counter_offer.quantity
        return self.quantity

    @property
    def total_amount(self) -> Decimal:
        return self.effective_amount * self.effective_quantity

    def role_of(self, actor_id: str) -> Optional[PartyRole]:
        """Return the actor's role on this bid, or None for outsiders."""

        if actor_id == self.buyer_id:
            return PartyRole.BUYER
        if actor_id == self.seller_id:
            return PartyRole.SELLER
        return None

    def rank_key(self) -> tuple[Decimal, datetime]:
        """Sort key: highest amount first, earlier bid wins ties."""

        return (-self.amount, self.created_at)


__all__ = [
    "SYSTEM_ACTOR",
    "BidStatus",
    "BidAction",
    "PartyRole",
    "BuyerType",
    "Language",
    "BidMessage",
    "CounterOffer",
    "Bid",
    "is_positive_amount",
    "is_positive_quantity",
]
