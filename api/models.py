"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Amounts and quantities are deliberately unconstrained here: the negotiation
service validates them and reports InvalidAmount / InvalidQuantity codes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.bid import Bid, BidAction, BidMessage, BidStatus, BuyerType, CounterOffer, Language, PartyRole


# ============================================================================
# Shared Models
# ============================================================================

class MessageModel(BaseModel):
    """Message text with its optional translation."""
    original: str
    translated: Optional[str] = None
    source_lang: Optional[Language] = None
    target_lang: Optional[Language] = None
    confidence: Optional[float] = None

    @classmethod
    def from_domain(cls, message: Optional[BidMessage]) -> Optional["MessageModel"]:
        if message is None:
            return None
        return cls(
            original=message.original,
            translated=message.translated,
            source_lang=message.source_lang,
            target_lang=message.target_lang,
            confidence=message.confidence,
        )


class CounterOfferModel(BaseModel):
    """Open counter offer on a bid."""
    amount: Decimal
    quantity: int
    offered_by: PartyRole
    created_at: datetime
    message: Optional[MessageModel] = None

    @classmethod
    def from_domain(cls, counter: Optional[CounterOffer]) -> Optional["CounterOfferModel"]:
        if counter is None:
            return None
        return cls(
            amount=counter.amount,
            quantity=counter.quantity,
            offered_by=counter.offered_by,
            created_at=counter.created_at,
            message=MessageModel.from_domain(counter.message),
        )


# ============================================================================
# Bid Models
# ============================================================================

class PlaceBidRequest(BaseModel):
    """Request to place a bid. The buyer is the authenticated actor."""
    product_id: str = Field(..., min_length=1, description="Product listing being bid on")
    seller_id: str = Field(..., min_length=1, description="Seller who owns the listing")
    amount: Any = Field(..., description="Offered unit price (positive decimal)")
    quantity: Any = Field(..., description="Number of units (positive integer)")
    buyer_type: BuyerType = BuyerType.B2C
    message: Optional[str] = None
    source_lang: Optional[Language] = None
    target_lang: Optional[Language] = None

    class Config:
        json_schema_extra = {
            "example": {
                "product_id": "tomatoes-organic-001",
                "seller_id": "seller-ravi",
                "amount": "48.00",
                "quantity": 50,
                "buyer_type": "B2B",
                "message": "मुझे 50 किलो चाहिए",
                "source_lang": "hindi",
                "target_lang": "english"
            }
        }


class RespondRequest(BaseModel):
    """Request to act on an existing bid."""
    action: BidAction
    amount: Optional[Any] = Field(None, description="Counter offer unit price")
    quantity: Optional[Any] = Field(None, description="Counter offer quantity")
    message: Optional[str] = None
    source_lang: Optional[Language] = None
    target_lang: Optional[Language] = None

    class Config:
        json_schema_extra = {
            "example": {
                "action": "counter",
                "amount": "52.00",
                "quantity": 50,
                "message": "Best I can do is 52 per kg"
            }
        }


class BidResponse(BaseModel):
    """Snapshot of a bid."""
    bid_id: UUID
    product_id: str
    buyer_id: str
    seller_id: str
    amount: Decimal
    quantity: int
    total_amount: Decimal
    status: BidStatus
    buyer_type: BuyerType
    version: int
    message: Optional[MessageModel] = None
    counter_offer: Optional[CounterOfferModel] = None
    response_message: Optional[MessageModel] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, bid: Bid) -> "BidResponse":
        return cls(
            bid_id=bid.bid_id,
            product_id=bid.product_id,
            buyer_id=bid.buyer_id,
            seller_id=bid.seller_id,
            amount=bid.amount,
            quantity=bid.quantity,
            total_amount=bid.total_amount,
            status=bid.status,
            buyer_type=bid.buyer_type,
            version=bid.version,
            message=MessageModel.from_domain(bid.message),
            counter_offer=CounterOfferModel.from_domain(bid.counter_offer),
            response_message=MessageModel.from_domain(bid.response_message),
            created_at=bid.created_at,
            updated_at=bid.updated_at,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "bid_id": "123e4567-e89b-12d3-a456-426614174000",
                "product_id": "tomatoes-organic-001",
                "buyer_id": "buyer-delhi-01",
                "seller_id": "seller-ravi",
                "amount": "48.00",
                "quantity": 50,
                "total_amount": "2400.00",
                "status": "pending",
                "buyer_type": "B2B",
                "version": 1,
                "message": {
                    "original": "मुझे 50 किलो चाहिए",
                    "translated": "I need 50 kg",
                    "source_lang": "hindi",
                    "target_lang": "english",
                    "confidence": 0.93
                },
                "counter_offer": None,
                "response_message": None,
                "created_at": "2025-01-01T12:00:00Z",
                "updated_at": "2025-01-01T12:00:00Z"
            }
        }


class BidListResponse(BaseModel):
    """Response for bid listings."""
    items: List[BidResponse]
    total_count: int

    @classmethod
    def from_domain(cls, bids: List[Bid]) -> "BidListResponse":
        return cls(items=[BidResponse.from_domain(bid) for bid in bids], total_count=len(bids))


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "InvalidTransition",
                "detail": "Cannot accept a bid in state accepted",
                "status_code": 422
            }
        }
