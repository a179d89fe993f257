"""
Supabase-backed listing catalog (persistence).

Reads product listings from the `products` table and reserves stock with a
conditional update (`WHERE product_id = ? AND quantity_available = ?`). An
empty result means another writer moved the stock first; the reservation is
re-read and retried a bounded number of times.

Expected schema (PostgreSQL):

    create table products (
        product_id text primary key,
        seller_id text not null,
        status text not null default 'active',
        unit text not null default 'kg',
        quantity_available integer not null check (quantity_available >= 0),
        retail_price numeric,
        wholesale_price numeric,
        wholesale_min_quantity integer,
        updated_at_utc timestamptz not null
    );
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from domain.errors import ConflictError, ProductNotFoundError, insufficient_stock
from domain.listing import Listing, ListingStatus
from domain.time import to_iso_utc, utc_now
from repositories.supabase_bid_store import _rows

# Supabase table name for product listings.
_PRODUCTS_TABLE: str = "products"

DEFAULT_MAX_ATTEMPTS = 3


def _decimal_or_none(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _row_to_listing(row: Mapping[str, Any]) -> Listing:
    """Convert a Supabase row into a Listing."""

    min_quantity = row.get("wholesale_min_quantity")
    return Listing(
        product_id=str(row["product_id"]),
        seller_id=str(row["seller_id"]),
        quantity_available=int(row["quantity_available"]),
        status=ListingStatus(str(row.get("status") or ListingStatus.ACTIVE.value)),
        unit=str(row.get("unit") or "kg"),
        retail_price=_decimal_or_none(row.get("retail_price")),
        wholesale_price=_decimal_or_none(row.get("wholesale_price")),
        wholesale_min_quantity=int(min_quantity) if min_quantity is not None else None,
    )


class SupabaseListingCatalog:
    """ListingCatalog backed by the Supabase `products` table."""

    def __init__(
        self,
        client: Any,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._client = client
        self._clock = clock
        self._max_attempts = max_attempts

    def _table(self) -> Any:
        return self._client.table(_PRODUCTS_TABLE)

    def get_listing(self, product_id: str) -> Optional[Listing]:
        response = self._table().select("*").eq("product_id", product_id).limit(1).execute()
        rows = _rows(response, "get listing")
        return _row_to_listing(rows[0]) if rows else None

    def _require(self, product_id: str) -> Listing:
        listing = self.get_listing(product_id)
        if listing is None:
            raise ProductNotFoundError(product_id)
        return listing

    def _adjust(self, product_id: str, delta: int) -> Listing:
        for _ in range(self._max_attempts):
            listing = self._require(product_id)
            if delta < 0 and not listing.is_active:
                raise ProductNotFoundError(product_id)
            new_quantity = listing.quantity_available + delta
            if new_quantity < 0:
                raise insufficient_stock(product_id, -delta, listing.quantity_available)

            response = (
                self._table()
                .update(
                    {
                        "quantity_available": new_quantity,
                        "updated_at_utc": to_iso_utc(self._clock(), name="updated_at"),
                    }
                )
                .eq("product_id", product_id)
                .eq("quantity_available", listing.quantity_available)
                .execute()
            )
            updated_rows = _rows(response, "update listing stock")
            if updated_rows:
                return _row_to_listing(updated_rows[0])

        raise ConflictError(
            message=f"Stock for product {product_id} kept changing; gave up after {self._max_attempts} attempts",
            code="ConcurrentModification",
            details={"product_id": product_id, "attempts": self._max_attempts},
        )

    def reserve_stock(self, product_id: str, quantity: int) -> Listing:
        return self._adjust(product_id, -quantity)

    def release_stock(self, product_id: str, quantity: int) -> Listing:
        return self._adjust(product_id, quantity)


__all__ = ["SupabaseListingCatalog"]
