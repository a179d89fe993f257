"""
Listing catalog collaborator.

NegotiationService consults the catalog before placing a bid (listing exists,
is active, has pricing for the buyer type, has enough stock) and reserves
stock when a bid is accepted. Reservation is conditional: it never takes
`quantity_available` below zero.

The Supabase implementation lives in repositories/supabase_listing_catalog.py.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, Iterable, Optional, Protocol

from domain.errors import ProductNotFoundError, insufficient_stock
from domain.listing import Listing


class ListingCatalog(Protocol):
    def get_listing(self, product_id: str) -> Optional[Listing]: ...

    def reserve_stock(self, product_id: str, quantity: int) -> Listing:
        """
        Take `quantity` units off the listing.

        Raises:
            ProductNotFoundError: unknown or inactive product.
            ConflictError: InsufficientStock.
        """
        ...

    def release_stock(self, product_id: str, quantity: int) -> Listing:
        """Put back units taken by reserve_stock."""
        ...


class InMemoryListingCatalog:
    """Thread-safe catalog for tests and the in-memory backend."""

    def __init__(self, listings: Iterable[Listing] = ()) -> None:
        self._lock = threading.Lock()
        self._listings: Dict[str, Listing] = {listing.product_id: listing for listing in listings}

    def add(self, listing: Listing) -> None:
        with self._lock:
            self._listings[listing.product_id] = listing

    def get_listing(self, product_id: str) -> Optional[Listing]:
        with self._lock:
            return self._listings.get(product_id)

    def reserve_stock(self, product_id: str, quantity: int) -> Listing:
        with self._lock:
            listing = self._listings.get(product_id)
            if listing is None or not listing.is_active:
                raise ProductNotFoundError(product_id)
            if listing.quantity_available < quantity:
                raise insufficient_stock(product_id, quantity, listing.quantity_available)
            updated = replace(listing, quantity_available=listing.quantity_available - quantity)
            self._listings[product_id] = updated
            return updated

    def release_stock(self, product_id: str, quantity: int) -> Listing:
        with self._lock:
            listing = self._listings.get(product_id)
            if listing is None:
                raise ProductNotFoundError(product_id)
            updated = replace(listing, quantity_available=listing.quantity_available + quantity)
            self._listings[product_id] = updated
            return updated


__all__ = ["ListingCatalog", "InMemoryListingCatalog"]
