"""
Bids API Endpoints.

Endpoints for placing bids, responding to them, and listing a user's
negotiation activity. The acting user comes from the X-Actor-Id header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_actor_id, get_negotiation_service
from api.errors import to_http_exception
from api.models import BidListResponse, BidResponse, PlaceBidRequest, RespondRequest
from domain.bid import BidStatus, PartyRole
from domain.errors import AuthorizationError, BidLedgerError
from services.negotiation_service import NegotiationService, ResponsePayload

router = APIRouter()


@router.post(
    "/bids",
    response_model=BidResponse,
    status_code=201,
    summary="Place Bid",
    description="Place a pending bid on a product listing. One active bid per buyer and product."
)
def place_bid(
    request: PlaceBidRequest,
    actor_id: str = Depends(get_actor_id),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    Place a bid as the authenticated buyer.

    **Rules:**
    - `amount` must be a positive decimal and `quantity` a positive integer (422)
    - A buyer may hold only one pending/countered bid per product (409)
    - When listings are available: unknown or inactive products (404), missing
      pricing for the buyer type or below the wholesale minimum (422), and
      more than the listed stock (409)
    - If `source_lang` and `target_lang` differ, the message is translated and
      both texts are stored

    **Example request:**
    ```json
    {
      "product_id": "tomatoes-organic-001",
      "seller_id": "seller-ravi",
      "amount": "48.00",
      "quantity": 50,
      "message": "मुझे 50 किलो चाहिए",
      "source_lang": "hindi",
      "target_lang": "english"
    }
    ```
    """
    try:
        bid = service.place_bid(
            buyer_id=actor_id,
            product_id=request.product_id,
            seller_id=request.seller_id,
            amount=request.amount,
            quantity=request.quantity,
            message=request.message,
            buyer_type=request.buyer_type,
            source_lang=request.source_lang,
            target_lang=request.target_lang,
        )
        return BidResponse.from_domain(bid)

    except BidLedgerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to place bid: {str(e)}"
        )


@router.get(
    "/bids/{bid_id}",
    response_model=BidResponse,
    summary="Get Bid",
    description="Fetch a bid. Only its buyer and seller may read it."
)
def get_bid(
    bid_id: str,
    actor_id: str = Depends(get_actor_id),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    Return the current snapshot of a bid.

    Unknown ids and bids belonging to other users both return 403; a caller
    cannot tell which ids exist.
    """
    try:
        return BidResponse.from_domain(service.get_bid(bid_id, actor_id))

    except BidLedgerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to get bid: {str(e)}"
        )


@router.post(
    "/bids/{bid_id}/respond",
    response_model=BidResponse,
    summary="Respond To Bid",
    description="Accept, reject, counter or withdraw a bid."
)
def respond_to_bid(
    bid_id: str,
    request: RespondRequest,
    actor_id: str = Depends(get_actor_id),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    Apply an action to a bid.

    **Who may do what:**
    - Pending bid: the seller may `accept`, `reject` or `counter`; the buyer may `withdraw`
    - Countered bid: the other party to the open counter may `accept`, `reject` or `counter`
    - `expire` is reserved for the system actor, which requests cannot act as (403)

    **Errors:**
    - 403: not a party to this bid, or not this party's move
    - 404: accepting a bid whose product listing is gone or inactive
    - 409: the bid kept changing underneath the request, or the listing no longer
      has the stock to accept it
    - 422: the bid's state does not allow the action, or the counter offer is invalid

    **Example request:**
    ```json
    {"action": "counter", "amount": "52.00", "quantity": 50}
    ```
    """
    try:
        payload = ResponsePayload(
            amount=request.amount,
            quantity=request.quantity,
            message=request.message,
            source_lang=request.source_lang,
            target_lang=request.target_lang,
        )
        bid = service.respond_to_bid(bid_id, actor_id, request.action, payload)
        return BidResponse.from_domain(bid)

    except BidLedgerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to respond to bid: {str(e)}"
        )


@router.get(
    "/users/{user_id}/bids",
    response_model=BidListResponse,
    summary="List User Activity",
    description="Bids placed by (role=buyer) or received by (role=seller) a user, newest first."
)
def list_user_bids(
    user_id: str,
    role: PartyRole = Query(..., description="buyer or seller"),
    status: Optional[BidStatus] = Query(None, description="Filter by bid status"),
    limit: int = Query(20, ge=1, le=500, description="Maximum number of results to return"),
    actor_id: str = Depends(get_actor_id),
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    List a user's bids. Users may only list their own activity.

    **Example usage:**
    - Incoming bids for a seller: `GET /api/v1/users/seller-ravi/bids?role=seller`
    - A buyer's open bids: `GET /api/v1/users/buyer-1/bids?role=buyer&status=pending`
    """
    if actor_id != user_id:
        raise to_http_exception(AuthorizationError("Not authorized to view another user's bids"))

    try:
        bids = service.list_activity(user_id, role, status=status, limit=limit)
        return BidListResponse.from_domain(bids)

    except BidLedgerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list bids: {str(e)}"
        )
