"""
Products API Endpoints.

Read-only bid views for a product listing.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_negotiation_service
from api.errors import to_http_exception
from api.models import BidListResponse, BidResponse
from domain.errors import BidLedgerError
from services.negotiation_service import NegotiationService

router = APIRouter()


@router.get(
    "/products/{product_id}/top-bid",
    response_model=BidResponse,
    summary="Get Top Bid",
    description="Highest active bid on a product. Equal amounts rank by who bid first."
)
def get_top_bid(
    product_id: str,
    service: NegotiationService = Depends(get_negotiation_service),
):
    """
    Return the highest-ranked pending or countered bid on a product.

    Returns 404 when the product has no active bid.
    """
    try:
        bid = service.get_top_bid(product_id)

    except BidLedgerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to get top bid: {str(e)}"
        )

    if bid is None:
        raise HTTPException(
            status_code=404,
            detail=f"No active bids for product: {product_id}"
        )
    return BidResponse.from_domain(bid)


@router.get(
    "/products/{product_id}/bids",
    response_model=BidListResponse,
    summary="List Product Bids",
    description="All bids on a product ranked by amount (highest first), then by time."
)
def list_product_bids(
    product_id: str,
    service: NegotiationService = Depends(get_negotiation_service),
):
    try:
        return BidListResponse.from_domain(service.list_product_bids(product_id))

    except BidLedgerError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list product bids: {str(e)}"
        )
