"""
Supabase-backed bid store (persistence).

Durable BidStore over the `bids` table. Compare-and-swap is a conditional
update (`WHERE bid_id = ? AND version = ?`); an empty result means another
writer got there first.

Expected schema (PostgreSQL):

    create table bids (
        bid_id uuid primary key,
        product_id text not null,
        buyer_id text not null,
        seller_id text not null,
        amount numeric not null check (amount > 0),
        quantity integer not null check (quantity > 0),
        status text not null,
        buyer_type text not null default 'B2C',
        version integer not null default 1,
        message jsonb,
        counter_offer jsonb,
        response_message jsonb,
        created_at_utc timestamptz not null,
        updated_at_utc timestamptz not null
    );
    create unique index bids_one_active_per_buyer
        on bids (buyer_id, product_id) where status in ('pending', 'countered');
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.bid import Bid, BidMessage, BidStatus, BuyerType, CounterOffer, Language, PartyRole
from domain.errors import NotFoundError
from domain.time import parse_utc_datetime, to_iso_utc, utc_now
from repositories.bid_store import ActiveBidConflict, VersionConflict, rank_bids

# Supabase table name for bids.
# Keep this aligned with your database schema.
_BIDS_TABLE: str = "bids"

_ACTIVE_STATUSES: List[str] = [BidStatus.PENDING.value, BidStatus.COUNTERED.value]

# PostgreSQL unique_violation
_UNIQUE_VIOLATION = "23505"


def _message_to_row(message: Optional[BidMessage]) -> Optional[Dict[str, Any]]:
    if message is None:
        return None
    return {
        "original": message.original,
        "translated": message.translated,
        "source_lang": message.source_lang.value if message.source_lang else None,
        "target_lang": message.target_lang.value if message.target_lang else None,
        "confidence": message.confidence,
    }


def _row_to_message(value: Optional[Mapping[str, Any]]) -> Optional[BidMessage]:
    if not value:
        return None
    source = value.get("source_lang")
    target = value.get("target_lang")
    return BidMessage(
        original=str(value["original"]),
        translated=value.get("translated"),
        source_lang=Language(source) if source else None,
        target_lang=Language(target) if target else None,
        confidence=value.get("confidence"),
    )


def _counter_to_row(counter: Optional[CounterOffer]) -> Optional[Dict[str, Any]]:
    if counter is None:
        return None
    return {
        "amount": str(counter.amount),
        "quantity": counter.quantity,
        "created_at_utc": to_iso_utc(counter.created_at, name="counter_offer.created_at"),
        "offered_by": counter.offered_by.value,
        "message": _message_to_row(counter.message),
    }


def _row_to_counter(value: Optional[Mapping[str, Any]]) -> Optional[CounterOffer]:
    if not value:
        return None
    return CounterOffer(
        amount=Decimal(str(value["amount"])),
        quantity=int(value["quantity"]),
        created_at=parse_utc_datetime(value["created_at_utc"]),
        offered_by=PartyRole(str(value["offered_by"])),
        message=_row_to_message(value.get("message")),
    )


def _bid_to_row(bid: Bid) -> Dict[str, Any]:
    return {
        "bid_id": str(bid.bid_id),
        "product_id": bid.product_id,
        "buyer_id": bid.buyer_id,
        "seller_id": bid.seller_id,
        "amount": str(bid.amount),
        "quantity": bid.quantity,
        "status": bid.status.value,
        "buyer_type": bid.buyer_type.value,
        "version": bid.version,
        "message": _message_to_row(bid.message),
        "counter_offer": _counter_to_row(bid.counter_offer),
        "response_message": _message_to_row(bid.response_message),
        "created_at_utc": to_iso_utc(bid.created_at, name="created_at"),
        "updated_at_utc": to_iso_utc(bid.updated_at, name="updated_at"),
    }


def _row_to_bid(row: Mapping[str, Any]) -> Bid:
    """Convert a Supabase row into a Bid."""

    return Bid(
        bid_id=UUID(str(row["bid_id"])),
        product_id=str(row["product_id"]),
        buyer_id=str(row["buyer_id"]),
        seller_id=str(row["seller_id"]),
        amount=Decimal(str(row["amount"])),
        quantity=int(row["quantity"]),
        status=BidStatus(str(row["status"])),
        buyer_type=BuyerType(str(row.get("buyer_type") or BuyerType.B2C.value)),
        version=int(row["version"]),
        message=_row_to_message(row.get("message")),
        counter_offer=_row_to_counter(row.get("counter_offer")),
        response_message=_row_to_message(row.get("response_message")),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
    )


def _rows(response: Any, action: str) -> List[Mapping[str, Any]]:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


class SupabaseBidStore:
    """BidStore backed by the Supabase `bids` table."""

    def __init__(self, client: Any, clock: Callable[[], datetime] = utc_now) -> None:
        self._client = client
        self._clock = clock

    def _table(self) -> Any:
        return self._client.table(_BIDS_TABLE)

    def get(self, bid_id: UUID) -> Bid:
        response = self._table().select("*").eq("bid_id", str(bid_id)).limit(1).execute()
        rows = _rows(response, "get bid")
        if not rows:
            raise NotFoundError(bid_id)
        return _row_to_bid(rows[0])

    def create(self, bid: Bid) -> Bid:
        """
        Insert a new bid at version 1.

        Enforces the one-active-bid rule with a pre-check for a clean error and
        relies on the partial unique index to close the race between check and
        insert.
        """

        stored = replace(bid, version=1)
        if stored.is_active and self.find_active_by_buyer_and_product(bid.buyer_id, bid.product_id):
            raise ActiveBidConflict(bid.buyer_id, bid.product_id)

        try:
            response = self._table().insert(_bid_to_row(stored)).execute()
        except APIError as e:
            if str(getattr(e, "code", "")) == _UNIQUE_VIOLATION:
                raise ActiveBidConflict(bid.buyer_id, bid.product_id) from None
            raise

        error = getattr(response, "error", None)
        if error:
            if str(getattr(error, "code", None)) == _UNIQUE_VIOLATION:
                raise ActiveBidConflict(bid.buyer_id, bid.product_id) from None
            raise RuntimeError(f"Failed to create bid: {error}")
        return stored

    def put(self, bid: Bid, expected_version: int) -> Bid:
        """
        Compare-and-swap write.

        Requirements:
        - Must only update if the stored version equals expected_version.
        """

        now = self._clock()
        stored = replace(bid, version=expected_version + 1, updated_at=max(now, bid.updated_at))
        payload = _bid_to_row(stored)
        # Identity columns never change.
        for column in ("bid_id", "product_id", "buyer_id", "seller_id", "created_at_utc"):
            payload.pop(column)

        try:
            response = (
                self._table()
                .update(payload)
                .eq("bid_id", str(bid.bid_id))
                .eq("version", expected_version)
                .execute()
            )
        except APIError as e:
            if str(getattr(e, "code", "")) == _UNIQUE_VIOLATION:
                raise ActiveBidConflict(bid.buyer_id, bid.product_id) from None
            raise

        updated_rows = _rows(response, "update bid")
        if not updated_rows:
            # Either no record exists, or its version moved on.
            current = self.get(bid.bid_id)
            raise VersionConflict(bid.bid_id, expected_version, current.version)
        return stored

    def find_active_by_buyer_and_product(self, buyer_id: str, product_id: str) -> Optional[Bid]:
        response = (
            self._table()
            .select("*")
            .eq("buyer_id", buyer_id)
            .eq("product_id", product_id)
            .in_("status", _ACTIVE_STATUSES)
            .limit(1)
            .execute()
        )
        rows = _rows(response, "find active bid")
        return _row_to_bid(rows[0]) if rows else None

    def list_by_product(self, product_id: str) -> List[Bid]:
        response = (
            self._table()
            .select("*")
            .eq("product_id", product_id)
            .order("amount", desc=True)
            .order("created_at_utc")
            .execute()
        )
        # Re-rank on Decimal values; ties must break on created_at.
        return rank_bids([_row_to_bid(row) for row in _rows(response, "list product bids")])

    def list_by_party(self, user_id: str, role: PartyRole) -> List[Bid]:
        column = "buyer_id" if role is PartyRole.BUYER else "seller_id"
        response = self._table().select("*").eq(column, user_id).execute()
        return [_row_to_bid(row) for row in _rows(response, "list party bids")]


__all__ = ["SupabaseBidStore"]
