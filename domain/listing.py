"""
Domain: Product listing as seen by the bid ledger.

The ledger does not own listings. It reads them to decide whether a bid may
be placed, and reserves stock when a bid is accepted.

Rules:
- Only active listings take bids.
- B2B bids need wholesale pricing and at least the wholesale minimum quantity.
- B2C bids need retail pricing.
- A bid can never ask for more than `quantity_available`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .bid import BuyerType, is_positive_amount, is_positive_quantity


class ListingStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD = "sold"


@dataclass(frozen=True, slots=True)
class Listing:
    product_id: str
    seller_id: str
    quantity_available: int
    status: ListingStatus = ListingStatus.ACTIVE
    unit: str = "kg"
    retail_price: Optional[Decimal] = None
    wholesale_price: Optional[Decimal] = None
    wholesale_min_quantity: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.product_id or not self.seller_id:
            raise ValueError("product_id and seller_id are required")
        if (
            not isinstance(self.quantity_available, int)
            or isinstance(self.quantity_available, bool)
            or self.quantity_available < 0
        ):
            raise ValueError("quantity_available must be a non-negative int")
        for name in ("retail_price", "wholesale_price"):
            price = getattr(self, name)
            if price is not None and not is_positive_amount(price):
                raise ValueError(f"{name} must be a positive Decimal")
        if self.wholesale_min_quantity is not None and not is_positive_quantity(self.wholesale_min_quantity):
            raise ValueError("wholesale_min_quantity must be a positive int")

    @property
    def is_active(self) -> bool:
        return self.status is ListingStatus.ACTIVE

    def offers(self, buyer_type: BuyerType) -> bool:
        """True when the listing has pricing for this kind of buyer."""

        if buyer_type is BuyerType.B2B:
            return self.wholesale_price is not None
        return self.retail_price is not None

    def minimum_quantity(self, buyer_type: BuyerType) -> int:
        if buyer_type is BuyerType.B2B and self.wholesale_min_quantity is not None:
            return self.wholesale_min_quantity
        return 1


__all__ = ["ListingStatus", "Listing"]
