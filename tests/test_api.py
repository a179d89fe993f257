"""
API tests for the bid endpoints.

WHAT: Drive the FastAPI app end to end against an in-memory store
WHY: Error codes must map to stable HTTP statuses and bodies
HOW: Override the service dependency with a test-wired NegotiationService
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_negotiation_service
from api.main import app
from bid_fixtures import FakeClock
from domain.listing import Listing
from repositories.bid_store import InMemoryBidStore
from services.listing_catalog import InMemoryListingCatalog
from services.negotiation_service import NegotiationService
from services.notifications import InMemoryNotificationSink

BUYER = {"X-Actor-Id": "buyer-1"}
SELLER = {"X-Actor-Id": "seller-1"}
STRANGER = {"X-Actor-Id": "someone-else"}
SYSTEM = {"X-Actor-Id": "system"}


@pytest.fixture
def client(service: NegotiationService):
    """FastAPI test client bound to the fixture service."""
    app.dependency_overrides[get_negotiation_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def _place(client: TestClient, amount="48.00", quantity=50, headers=BUYER, product_id="tomatoes-001"):
    return client.post(
        "/api/v1/bids",
        json={
            "product_id": product_id,
            "seller_id": "seller-1",
            "amount": amount,
            "quantity": quantity,
        },
        headers=headers,
    )


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store_backend"] in ("memory", "supabase")

    def test_root(self, client):
        assert client.get("/").json()["message"] == "Bid Ledger API"


class TestPlaceBid:
    def test_place_bid_returns_201(self, client, sink: InMemoryNotificationSink):
        response = _place(client)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["buyer_id"] == "buyer-1"
        assert data["version"] == 1
        assert Decimal(str(data["amount"])) == Decimal("48.00")
        assert Decimal(str(data["total_amount"])) == Decimal("2400.00")
        assert [e.event_type.value for e in sink.events] == ["BidPlaced"]

    def test_missing_actor_header_returns_401(self, client):
        response = _place(client, headers={})

        assert response.status_code == 401

    def test_duplicate_active_bid_returns_409(self, client):
        assert _place(client).status_code == 201

        response = _place(client, amount="50")

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "DuplicateActiveBid"

    @pytest.mark.parametrize(
        "amount, quantity, code",
        [
            ("-5", 10, "InvalidAmount"),
            ("0", 10, "InvalidAmount"),
            ("abc", 10, "InvalidAmount"),
            ("10", 0, "InvalidQuantity"),
            ("10", 2.5, "InvalidQuantity"),
        ],
    )
    def test_invalid_values_return_422(self, client, amount, quantity, code):
        response = _place(client, amount=amount, quantity=quantity)

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == code


class TestRespond:
    def test_counter_then_accept(self, client):
        bid_id = _place(client).json()["bid_id"]

        countered = client.post(
            f"/api/v1/bids/{bid_id}/respond",
            json={"action": "counter", "amount": "52.00"},
            headers=SELLER,
        )
        assert countered.status_code == 200
        assert countered.json()["status"] == "countered"
        assert countered.json()["counter_offer"]["offered_by"] == "seller"

        accepted = client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "accept"}, headers=BUYER)
        assert accepted.status_code == 200
        data = accepted.json()
        assert data["status"] == "accepted"
        assert Decimal(str(data["amount"])) == Decimal("52.00")
        assert data["counter_offer"] is None

    def test_outsider_gets_403(self, client):
        bid_id = _place(client).json()["bid_id"]

        response = client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "accept"}, headers=STRANGER)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "Unauthorized"

    def test_unknown_bid_looks_like_403(self, client):
        response = client.post(
            "/api/v1/bids/00000000-0000-0000-0000-000000000000/respond",
            json={"action": "accept"},
            headers=SELLER,
        )

        assert response.status_code == 403

    def test_invalid_transition_returns_422(self, client):
        bid_id = _place(client).json()["bid_id"]
        client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "reject"}, headers=SELLER)

        response = client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "reject"}, headers=SELLER)

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "InvalidTransition"

    def test_expired_bid_cannot_be_accepted(self, client, clock: FakeClock):
        bid_id = _place(client).json()["bid_id"]
        clock.advance(hours=49)

        response = client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "accept"}, headers=SELLER)

        assert response.status_code == 422
        assert client.get(f"/api/v1/bids/{bid_id}", headers=BUYER).json()["status"] == "expired"

    def test_unknown_action_is_rejected(self, client):
        bid_id = _place(client).json()["bid_id"]

        response = client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "haggle"}, headers=SELLER)

        assert response.status_code == 422

    def test_system_actor_header_is_forbidden(self, client):
        bid_id = _place(client).json()["bid_id"]
        unknown = "00000000-0000-0000-0000-000000000000"

        responses = [
            client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "expire"}, headers=SYSTEM),
            client.get(f"/api/v1/bids/{unknown}", headers=SYSTEM),
            client.get(f"/api/v1/bids/{bid_id}", headers=SYSTEM),
        ]

        assert [r.status_code for r in responses] == [403, 403, 403]
        assert {r.json()["detail"]["error"] for r in responses} == {"Unauthorized"}
        assert client.get(f"/api/v1/bids/{bid_id}", headers=BUYER).json()["status"] == "pending"


class TestQueries:
    def test_get_bid_for_parties_only(self, client):
        bid_id = _place(client).json()["bid_id"]

        assert client.get(f"/api/v1/bids/{bid_id}", headers=BUYER).status_code == 200
        assert client.get(f"/api/v1/bids/{bid_id}", headers=SELLER).status_code == 200
        assert client.get(f"/api/v1/bids/{bid_id}", headers=STRANGER).status_code == 403

    def test_top_bid_and_listing(self, client, clock: FakeClock):
        _place(client, amount="40", headers={"X-Actor-Id": "buyer-a"})
        clock.advance(minutes=1)
        early = _place(client, amount="55", headers={"X-Actor-Id": "buyer-b"}).json()
        clock.advance(minutes=1)
        _place(client, amount="55", headers={"X-Actor-Id": "buyer-c"})

        top = client.get("/api/v1/products/tomatoes-001/top-bid")
        assert top.status_code == 200
        assert top.json()["bid_id"] == early["bid_id"]

        listing = client.get("/api/v1/products/tomatoes-001/bids").json()
        assert listing["total_count"] == 3
        assert [item["buyer_id"] for item in listing["items"]] == ["buyer-b", "buyer-c", "buyer-a"]

    def test_top_bid_without_active_bids_returns_404(self, client):
        response = client.get("/api/v1/products/nothing-here/top-bid")

        assert response.status_code == 404

    def test_user_activity(self, client):
        _place(client, product_id="p-1")
        _place(client, product_id="p-2")

        mine = client.get("/api/v1/users/buyer-1/bids", params={"role": "buyer", "limit": 1}, headers=BUYER)
        assert mine.status_code == 200
        assert mine.json()["total_count"] == 1

        incoming = client.get("/api/v1/users/seller-1/bids", params={"role": "seller"}, headers=SELLER)
        assert incoming.json()["total_count"] == 2

    def test_user_activity_of_someone_else_is_forbidden(self, client):
        response = client.get("/api/v1/users/seller-1/bids", params={"role": "seller"}, headers=BUYER)

        assert response.status_code == 403
        assert response.json()["detail"]["error"] == "Unauthorized"


class TestListings:
    @pytest.fixture
    def catalog(self) -> InMemoryListingCatalog:
        return InMemoryListingCatalog(
            [
                Listing(
                    product_id="tomatoes-001",
                    seller_id="seller-1",
                    quantity_available=60,
                    retail_price=Decimal("50"),
                )
            ]
        )

    @pytest.fixture
    def client(self, store: InMemoryBidStore, catalog: InMemoryListingCatalog, clock: FakeClock):
        service = NegotiationService(store, listing_catalog=catalog, clock=clock)
        app.dependency_overrides[get_negotiation_service] = lambda: service
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_unknown_product_returns_404(self, client):
        response = _place(client, product_id="onions-404")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "NotFound"

    def test_quantity_above_stock_returns_409(self, client):
        response = _place(client, quantity=61)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "InsufficientStock"

    def test_wholesale_without_wholesale_price_returns_422(self, client):
        response = client.post(
            "/api/v1/bids",
            json={
                "product_id": "tomatoes-001",
                "seller_id": "seller-1",
                "amount": "45",
                "quantity": 50,
                "buyer_type": "B2B",
            },
            headers=BUYER,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "PricingUnavailable"

    def test_accept_takes_stock_off_the_listing(self, client, catalog: InMemoryListingCatalog):
        bid_id = _place(client, quantity=50).json()["bid_id"]

        response = client.post(f"/api/v1/bids/{bid_id}/respond", json={"action": "accept"}, headers=SELLER)

        assert response.status_code == 200
        assert catalog.get_listing("tomatoes-001").quantity_available == 10
