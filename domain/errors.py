"""
Domain: Error taxonomy for the bid ledger.

Every rejected operation surfaces as one of these typed errors; nothing is
reported as a silent no-op. Each error carries a stable `code` that the API
layer maps to an HTTP status.

- ValidationError: bad input values (caller bug, never retried).
- AuthorizationError: wrong actor (never retried).
- ConflictError: duplicate active bid, stock shortfall, or CAS retries exhausted.
- StateError: transition not allowed from the current state.
- NotFoundError: unknown bid or product listing.
"""

from __future__ import annotations

from typing import Any, Optional


class BidLedgerError(Exception):
    """Base class for bid ledger failures."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ValidationError(BidLedgerError):
    """Raised for malformed amounts or quantities."""


class AuthorizationError(BidLedgerError):
    """Raised when the actor is not allowed to perform the action."""

    def __init__(self, message: str = "Not authorized to act on this bid"):
        # No details: the response must not reveal who owns the bid.
        super().__init__(message=message, code="Unauthorized")


class ConflictError(BidLedgerError):
    """Raised when the operation conflicts with concurrent or existing state."""


class StateError(BidLedgerError):
    """Raised when the current bid state does not allow the action."""


class NotFoundError(BidLedgerError):
    """Raised when a bid does not exist."""

    def __init__(self, bid_id: Any):
        super().__init__(
            message=f"Bid not found: {bid_id}",
            code="NotFound",
            details={"bid_id": str(bid_id)},
        )


class ProductNotFoundError(NotFoundError):
    """Raised when a product listing is missing or not taking bids."""

    def __init__(self, product_id: str):
        BidLedgerError.__init__(
            self,
            message=f"Product not found or not available: {product_id}",
            code="NotFound",
            details={"product_id": product_id},
        )


def invalid_amount(value: Any) -> ValidationError:
    return ValidationError(
        message=f"Amount must be a positive decimal, got {value!r}",
        code="InvalidAmount",
        details={"amount": str(value)},
    )


def invalid_quantity(value: Any) -> ValidationError:
    return ValidationError(
        message=f"Quantity must be a positive integer, got {value!r}",
        code="InvalidQuantity",
        details={"quantity": str(value)},
    )


def duplicate_active_bid(buyer_id: str, product_id: str) -> ConflictError:
    return ConflictError(
        message=f"Buyer {buyer_id} already has an active bid on product {product_id}",
        code="DuplicateActiveBid",
        details={"buyer_id": buyer_id, "product_id": product_id},
    )


def concurrent_modification(bid_id: Any, attempts: int) -> ConflictError:
    return ConflictError(
        message=f"Bid {bid_id} was modified concurrently; gave up after {attempts} attempts",
        code="ConcurrentModification",
        details={"bid_id": str(bid_id), "attempts": attempts},
    )


def invalid_transition(current: str, action: str) -> StateError:
    return StateError(
        message=f"Cannot {action} a bid in state {current}",
        code="InvalidTransition",
        details={"current_status": current, "action": action},
    )


def invalid_request(message: str, **details: Any) -> ValidationError:
    return ValidationError(
        message=message,
        code="InvalidRequest",
        details={key: str(value) for key, value in details.items()} or None,
    )


def pricing_unavailable(product_id: str, buyer_type: str) -> ValidationError:
    return ValidationError(
        message=f"{buyer_type} pricing not available for product {product_id}",
        code="PricingUnavailable",
        details={"product_id": product_id, "buyer_type": buyer_type},
    )


def below_minimum_quantity(quantity: int, minimum: int) -> ValidationError:
    return ValidationError(
        message=f"Minimum quantity for wholesale is {minimum}, got {quantity}",
        code="InvalidQuantity",
        details={"quantity": str(quantity), "minimum": str(minimum)},
    )


def insufficient_stock(product_id: str, requested: int, available: int) -> ConflictError:
    return ConflictError(
        message=f"Only {available} units of product {product_id} available, requested {requested}",
        code="InsufficientStock",
        details={"product_id": product_id, "requested": requested, "available": available},
    )


def invalid_counter_offer(reason: str, **details: Any) -> StateError:
    return StateError(
        message=f"Invalid counter offer: {reason}",
        code="InvalidCounterOffer",
        details={key: str(value) for key, value in details.items()} or None,
    )


__all__ = [
    "BidLedgerError",
    "ValidationError",
    "AuthorizationError",
    "ConflictError",
    "StateError",
    "NotFoundError",
    "ProductNotFoundError",
    "invalid_amount",
    "invalid_quantity",
    "duplicate_active_bid",
    "concurrent_modification",
    "invalid_transition",
    "invalid_counter_offer",
    "invalid_request",
    "pricing_unavailable",
    "below_minimum_quantity",
    "insufficient_stock",
]
