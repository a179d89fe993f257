"""
Bid store (persistence).

This module defines the storage contract for Bid records and an in-process
implementation. Stores enforce persistence constraints only:
- compare-and-swap writes keyed on `version`;
- at most one active (pending/countered) bid per (buyer_id, product_id).

They do not evaluate lifecycle rules; that is BidLifecycle's job.

Store errors are internal to the ledger. NegotiationService translates them
into the public error taxonomy.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Tuple
from uuid import UUID

from domain.bid import Bid, PartyRole
from domain.errors import NotFoundError
from domain.time import require_utc_timestamp, utc_now


class VersionConflict(Exception):
    """Stored version differs from the caller's expected version."""

    def __init__(self, bid_id: UUID, expected_version: int, actual_version: Optional[int] = None):
        super().__init__(
            f"Version conflict on bid {bid_id}: expected {expected_version}, found {actual_version}"
        )
        self.bid_id = bid_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class ActiveBidConflict(Exception):
    """An active bid already exists for (buyer_id, product_id)."""

    def __init__(self, buyer_id: str, product_id: str):
        super().__init__(f"Active bid already exists for buyer {buyer_id} on product {product_id}")
        self.buyer_id = buyer_id
        self.product_id = product_id


class BidStore(Protocol):
    def get(self, bid_id: UUID) -> Bid: ...

    def create(self, bid: Bid) -> Bid: ...

    def put(self, bid: Bid, expected_version: int) -> Bid: ...

    def find_active_by_buyer_and_product(self, buyer_id: str, product_id: str) -> Optional[Bid]: ...

    def list_by_product(self, product_id: str) -> List[Bid]: ...

    def list_by_party(self, user_id: str, role: PartyRole) -> List[Bid]: ...


def rank_bids(bids: List[Bid]) -> List[Bid]:
    """Order by amount descending, then created_at ascending."""

    return sorted(bids, key=lambda bid: bid.rank_key())


class InMemoryBidStore:
    """
    Thread-safe in-process BidStore.

    Records are held in a dict keyed by bid_id with a secondary index of
    active bids keyed by (buyer_id, product_id). Every check-then-write runs
    under one lock; the critical sections do no I/O.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._bids: Dict[UUID, Bid] = {}
        self._active: Dict[Tuple[str, str], UUID] = {}

    def get(self, bid_id: UUID) -> Bid:
        with self._lock:
            bid = self._bids.get(bid_id)
        if bid is None:
            raise NotFoundError(bid_id)
        return bid

    def create(self, bid: Bid) -> Bid:
        """
        Insert a new bid at version 1.

        Raises:
            ActiveBidConflict: another active bid exists for (buyer, product).
            ValueError: bid_id already exists.
        """

        key = (bid.buyer_id, bid.product_id)
        stored = replace(bid, version=1)
        with self._lock:
            if bid.bid_id in self._bids:
                raise ValueError(f"Bid already exists: {bid.bid_id}")
            if stored.is_active and key in self._active:
                raise ActiveBidConflict(bid.buyer_id, bid.product_id)
            self._bids[bid.bid_id] = stored
            if stored.is_active:
                self._active[key] = bid.bid_id
        return stored

    def put(self, bid: Bid, expected_version: int) -> Bid:
        """
        Compare-and-swap write.

        Succeeds only if the stored version equals `expected_version`; the
        stored record gets version `expected_version + 1` and a fresh
        updated_at.
        """

        now = self._clock()
        require_utc_timestamp("updated_at", now)
        key = (bid.buyer_id, bid.product_id)
        with self._lock:
            current = self._bids.get(bid.bid_id)
            if current is None:
                raise NotFoundError(bid.bid_id)
            if current.version != expected_version:
                raise VersionConflict(bid.bid_id, expected_version, current.version)
            if bid.is_active and not current.is_active and key in self._active:
                raise ActiveBidConflict(bid.buyer_id, bid.product_id)

            stored = replace(bid, version=expected_version + 1, updated_at=max(now, bid.updated_at))
            self._bids[bid.bid_id] = stored
            if stored.is_active:
                self._active[key] = bid.bid_id
            elif self._active.get(key) == bid.bid_id:
                del self._active[key]
        return stored

    def find_active_by_buyer_and_product(self, buyer_id: str, product_id: str) -> Optional[Bid]:
        with self._lock:
            bid_id = self._active.get((buyer_id, product_id))
            return self._bids[bid_id] if bid_id is not None else None

    def list_by_product(self, product_id: str) -> List[Bid]:
        with self._lock:
            bids = [bid for bid in self._bids.values() if bid.product_id == product_id]
        return rank_bids(bids)

    def list_by_party(self, user_id: str, role: PartyRole) -> List[Bid]:
        with self._lock:
            if role is PartyRole.BUYER:
                return [bid for bid in self._bids.values() if bid.buyer_id == user_id]
            return [bid for bid in self._bids.values() if bid.seller_id == user_id]


__all__ = [
    "VersionConflict",
    "ActiveBidConflict",
    "BidStore",
    "InMemoryBidStore",
    "rank_bids",
]
