"""
Tests for `repositories/supabase_bid_store.py`.

Uses the in-process stand-in for the supabase-py query builder so the
row mapping and the conditional-update CAS can be checked without a database.

Covers:
- Rows round-trip through the `bids` table layout (Decimal as text, UTC timestamps).
- put only lands when the stored version matches.
- The partial unique index surfaces as ActiveBidConflict.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from bid_fixtures import START, FakeClock
from bid_fixtures import make_bid as _bid
from domain.bid import BidMessage, BidStatus, BuyerType, CounterOffer, Language, PartyRole
from domain.errors import NotFoundError
from repositories.bid_store import ActiveBidConflict, VersionConflict
from repositories.supabase_bid_store import SupabaseBidStore
from supabase_fakes import FakeSupabase


@pytest.fixture
def client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def db_store(client: FakeSupabase, clock: FakeClock) -> SupabaseBidStore:
    return SupabaseBidStore(client, clock=clock)


def test_create_writes_row_layout(db_store: SupabaseBidStore, client: FakeSupabase) -> None:
    bid = db_store.create(replace(_bid(amount="12.50"), version=7))

    assert bid.version == 1
    row = client.table("bids").rows[0]
    assert row["bid_id"] == str(bid.bid_id)
    assert row["amount"] == "12.50"
    assert row["status"] == "pending"
    assert row["buyer_type"] == "B2C"
    assert row["version"] == 1
    assert row["created_at_utc"] == "2025-01-01T12:00:00+00:00"
    assert row["counter_offer"] is None


def test_get_round_trips_messages_and_counter_offer(db_store: SupabaseBidStore) -> None:
    message = BidMessage(
        original="मुझे जल्दी डिलीवरी चाहिए",
        translated="I need fast delivery",
        source_lang=Language.HINDI,
        target_lang=Language.ENGLISH,
        confidence=0.9,
    )
    bid = replace(
        _bid(amount="40"),
        status=BidStatus.COUNTERED,
        buyer_type=BuyerType.B2B,
        message=message,
        counter_offer=CounterOffer(
            amount=Decimal("45.25"),
            quantity=4,
            created_at=START,
            offered_by=PartyRole.SELLER,
        ),
    )
    db_store.create(bid)

    loaded = db_store.get(bid.bid_id)

    assert loaded == replace(bid, version=1)
    assert loaded.counter_offer is not None
    assert loaded.counter_offer.amount == Decimal("45.25")
    assert loaded.message == message


def test_get_unknown_raises_not_found(db_store: SupabaseBidStore) -> None:
    with pytest.raises(NotFoundError):
        db_store.get(uuid4())


def test_put_is_conditional_on_version(db_store: SupabaseBidStore, clock: FakeClock) -> None:
    bid = db_store.create(_bid())
    later = clock.advance(minutes=3)

    stored = db_store.put(replace(bid, status=BidStatus.ACCEPTED), expected_version=1)
    assert stored.version == 2
    assert stored.updated_at == later

    with pytest.raises(VersionConflict) as exc:
        db_store.put(replace(bid, status=BidStatus.REJECTED), expected_version=1)
    assert exc.value.actual_version == 2
    assert db_store.get(bid.bid_id).status is BidStatus.ACCEPTED


def test_put_unknown_raises_not_found(db_store: SupabaseBidStore) -> None:
    with pytest.raises(NotFoundError):
        db_store.put(_bid(), expected_version=1)


def test_second_active_bid_is_refused(db_store: SupabaseBidStore) -> None:
    db_store.create(_bid())

    with pytest.raises(ActiveBidConflict):
        db_store.create(_bid())


def test_unique_index_violation_maps_to_active_bid_conflict(
    db_store: SupabaseBidStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A concurrent insert that slips past the pre-check hits the partial index."""

    db_store.create(_bid())
    monkeypatch.setattr(db_store, "find_active_by_buyer_and_product", lambda buyer_id, product_id: None)

    with pytest.raises(ActiveBidConflict):
        db_store.create(_bid())


def test_find_active_ignores_terminal_bids(db_store: SupabaseBidStore) -> None:
    first = db_store.create(_bid())
    db_store.put(replace(first, status=BidStatus.WITHDRAWN), expected_version=1)

    assert db_store.find_active_by_buyer_and_product("buyer-1", "rice") is None
    second = db_store.create(_bid())
    assert db_store.find_active_by_buyer_and_product("buyer-1", "rice") == second


def test_list_by_product_ranks_numerically(db_store: SupabaseBidStore, client: FakeSupabase) -> None:
    nine = db_store.create(_bid(buyer="b-9", amount="9", minutes=0))
    early = db_store.create(_bid(buyer="b-early", amount="55", minutes=1))
    late = db_store.create(_bid(buyer="b-late", amount="55", minutes=2))
    hundred = db_store.create(_bid(buyer="b-100", amount="100", minutes=3))

    ranked = db_store.list_by_product("rice")

    assert [b.bid_id for b in ranked] == [hundred.bid_id, early.bid_id, late.bid_id, nine.bid_id]
    assert client.table("bids").orderings == [("amount", True), ("created_at_utc", False)]


def test_list_by_party_uses_role_column(db_store: SupabaseBidStore) -> None:
    mine = db_store.create(_bid(buyer="buyer-1"))
    db_store.create(_bid(buyer="buyer-2"))

    assert db_store.list_by_party("buyer-1", PartyRole.BUYER) == [mine]
    assert len(db_store.list_by_party("seller-1", PartyRole.SELLER)) == 2
