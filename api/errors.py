"""
Mapping from bid ledger errors to HTTP responses.

Status codes:
- 403 Unauthorized
- 404 NotFound (unknown bid for the system actor, missing or inactive product)
- 409 DuplicateActiveBid, ConcurrentModification, InsufficientStock
- 422 InvalidTransition, InvalidCounterOffer, InvalidAmount, InvalidQuantity,
      InvalidAction, InvalidRequest, PricingUnavailable
"""

from fastapi import HTTPException

from api.models import ErrorResponse
from domain.errors import (
    AuthorizationError,
    BidLedgerError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)


def status_code_for(error: BidLedgerError) -> int:
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, (StateError, ValidationError)):
        return 422
    return 400


def to_http_exception(error: BidLedgerError) -> HTTPException:
    status_code = status_code_for(error)
    body = ErrorResponse(error=error.code, detail=error.message, status_code=status_code)
    return HTTPException(status_code=status_code, detail=body.model_dump())
