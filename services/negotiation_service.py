"""
Negotiation service: the public surface of the bid ledger.

Handles:
- Placing bids (one active bid per buyer and product)
- Responding to bids (accept / reject / counter / withdraw / expire)
- Lazy expiry of stale bids on every touch
- Optimistic-concurrency retries around BidStore.put
- Event emission to the notification sink after commit
- Listing checks on placement and stock reservation on accept, when a
  ListingCatalog is configured

Every failure is raised as a typed error from domain.errors. Store-level
errors (VersionConflict, ActiveBidConflict) never leave this module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Union
from uuid import UUID, uuid4

from domain.bid import (
    SYSTEM_ACTOR,
    Bid,
    BidAction,
    BidMessage,
    BidStatus,
    BuyerType,
    Language,
    PartyRole,
    is_positive_amount,
    is_positive_quantity,
)
from domain.errors import (
    AuthorizationError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
    below_minimum_quantity,
    concurrent_modification,
    duplicate_active_bid,
    insufficient_stock,
    invalid_amount,
    invalid_quantity,
    invalid_request,
    invalid_transition,
    pricing_unavailable,
)
from domain.events import BidEvent, event_for
from domain.lifecycle import BidLifecycle
from domain.time import utc_now
from repositories.bid_store import ActiveBidConflict, BidStore, VersionConflict
from services.listing_catalog import ListingCatalog
from services.notifications import LoggingNotificationSink, NotificationSink
from services.translation import TranslationService, build_message

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class ResponsePayload:
    """
    Optional data accompanying a response.

    amount/quantity are required for counter offers (quantity defaults to the
    quantity currently on the table). message is kept on every action that
    records one.
    """

    amount: Optional[Any] = None
    quantity: Optional[int] = None
    message: Optional[str] = None
    source_lang: Optional[Language] = None
    target_lang: Optional[Language] = None


def _coerce_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise invalid_amount(value)
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise invalid_amount(value) from None
    else:
        raise invalid_amount(value)

    if not is_positive_amount(amount):
        raise invalid_amount(value)
    return amount


def _coerce_quantity(value: Any) -> int:
    if not is_positive_quantity(value):
        raise invalid_quantity(value)
    return value


def _require_id(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            message=f"{name} must be a non-empty string",
            code="InvalidRequest",
            details={"field": name},
        )
    return value


def _coerce_buyer_type(value: Any) -> BuyerType:
    try:
        return BuyerType(value)
    except ValueError:
        raise invalid_request(f"Unknown buyer_type: {value!r}", field="buyer_type") from None


def _coerce_language(name: str, value: Any) -> Optional[Language]:
    if value is None:
        return None
    try:
        return Language(value)
    except ValueError:
        raise invalid_request(f"Unsupported language for {name}: {value!r}", field=name) from None


class NegotiationService:
    """
    Composes BidStore and BidLifecycle into atomic operations.

    The service is stateless apart from its collaborators and is safe to call
    from many threads at once; per-bid ordering comes from the store's
    version check.
    """

    def __init__(
        self,
        store: BidStore,
        lifecycle: Optional[BidLifecycle] = None,
        *,
        translator: Optional[TranslationService] = None,
        notifier: Optional[NotificationSink] = None,
        listing_catalog: Optional[ListingCatalog] = None,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._store = store
        self._lifecycle = lifecycle or BidLifecycle()
        self._translator = translator
        self._notifier = notifier or LoggingNotificationSink()
        # Without a catalog, listing checks and stock reservation are skipped.
        self._catalog = listing_catalog
        self._clock = clock
        self._max_attempts = max_attempts

    @property
    def lifecycle(self) -> BidLifecycle:
        return self._lifecycle

    @property
    def store(self) -> BidStore:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def place_bid(
        self,
        buyer_id: str,
        product_id: str,
        seller_id: str,
        amount: Any,
        quantity: Any,
        message: Optional[str] = None,
        *,
        buyer_type: BuyerType = BuyerType.B2C,
        source_lang: Optional[Language] = None,
        target_lang: Optional[Language] = None,
    ) -> Bid:
        """
        Place a new pending bid.

        Raises:
            ValidationError: InvalidAmount, InvalidQuantity, InvalidRequest
                or PricingUnavailable.
            AuthorizationError: buyer and seller are the same user, or the
                buyer is the reserved system actor.
            NotFoundError: the listing is missing or inactive.
            ConflictError: DuplicateActiveBid or InsufficientStock.
        """

        parsed_amount = _coerce_amount(amount)
        parsed_quantity = _coerce_quantity(quantity)
        _require_id("buyer_id", buyer_id)
        _require_id("product_id", product_id)
        _require_id("seller_id", seller_id)
        parsed_buyer_type = _coerce_buyer_type(buyer_type)
        source = _coerce_language("source_lang", source_lang)
        target = _coerce_language("target_lang", target_lang)
        if buyer_id == seller_id or SYSTEM_ACTOR in (buyer_id, seller_id):
            raise AuthorizationError("Buyer and seller must be distinct users")
        if self._catalog is not None:
            self._check_listing(product_id, seller_id, parsed_buyer_type, parsed_quantity)

        now = self._clock()
        existing = self._store.find_active_by_buyer_and_product(buyer_id, product_id)
        if existing is not None and self._expire_if_stale(existing, now).is_active:
            raise duplicate_active_bid(buyer_id, product_id)

        bid = Bid(
            bid_id=uuid4(),
            product_id=product_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            amount=parsed_amount,
            quantity=parsed_quantity,
            status=BidStatus.PENDING,
            buyer_type=parsed_buyer_type,
            message=build_message(message, self._translator, source, target),
            created_at=now,
            updated_at=now,
        )

        try:
            stored = self._store.create(bid)
        except ActiveBidConflict:
            raise duplicate_active_bid(buyer_id, product_id) from None

        logger.info(
            f"Bid {stored.bid_id} placed on product {product_id}",
            extra={
                "bid_id": str(stored.bid_id),
                "product_id": product_id,
                "buyer_id": buyer_id,
                "seller_id": seller_id,
                "amount": str(stored.amount),
                "quantity": stored.quantity,
            },
        )
        self._publish(event_for(stored, None, buyer_id))
        return stored

    def respond_to_bid(
        self,
        bid_id: Union[UUID, str],
        actor_id: str,
        action: Union[BidAction, str],
        payload: Optional[ResponsePayload] = None,
    ) -> Bid:
        """
        Apply `action` to a bid on behalf of `actor_id`.

        Process:
        1. Re-read the bid (unknown ids look like Unauthorized to users)
        2. Expire it first if it has outlived the TTL
        3. Compute the new state through BidLifecycle
        4. Compare-and-swap it into the store
        5. On VersionConflict, start again from 1 (bounded attempts)

        Raises:
            ValidationError: unknown action, bad counter amount/quantity.
            AuthorizationError: Unauthorized.
            StateError: InvalidTransition, InvalidCounterOffer.
            ConflictError: ConcurrentModification after retries run out, or
                InsufficientStock when an accept no longer fits the listing.
            NotFoundError: unknown bid (system actor only), or an accept on a
                listing that is gone or inactive.
        """

        parsed_action = self._parse_action(action)
        payload = payload or ResponsePayload()

        amount: Optional[Decimal] = None
        quantity: Optional[int] = None
        if parsed_action is BidAction.COUNTER:
            amount = _coerce_amount(payload.amount)
            if payload.quantity is not None:
                quantity = _coerce_quantity(payload.quantity)
        source = _coerce_language("source_lang", payload.source_lang)
        target = _coerce_language("target_lang", payload.target_lang)

        # Translated at most once, and only after the actor passed the checks.
        message: Optional[BidMessage] = None
        message_built = False

        for attempt in range(1, self._max_attempts + 1):
            bid = self._load(bid_id, actor_id)
            now = self._clock()

            if parsed_action is not BidAction.EXPIRE and self._lifecycle.is_expired(bid, now):
                try:
                    self._commit_expiry(bid, now)
                except VersionConflict:
                    logger.debug(f"Version conflict expiring bid {bid.bid_id} (attempt {attempt})")
                    continue
                raise invalid_transition(BidStatus.EXPIRED.value, parsed_action.value)

            updated = self._lifecycle.apply(bid, parsed_action, actor_id, now, amount=amount, quantity=quantity)
            if payload.message is not None:
                if not message_built:
                    message = build_message(payload.message, self._translator, source, target)
                    message_built = True
                updated = self._lifecycle.apply(
                    bid,
                    parsed_action,
                    actor_id,
                    now,
                    amount=amount,
                    quantity=quantity,
                    message=message,
                )

            reserved = self._catalog is not None and updated.status is BidStatus.ACCEPTED
            if reserved:
                self._catalog.reserve_stock(updated.product_id, updated.quantity)
            try:
                stored = self._store.put(updated, bid.version)
            except VersionConflict:
                if reserved:
                    self._release_stock(updated)
                logger.debug(
                    f"Version conflict on bid {bid.bid_id} (attempt {attempt}/{self._max_attempts})",
                    extra={"bid_id": str(bid.bid_id), "action": parsed_action.value},
                )
                continue
            except Exception:
                if reserved:
                    self._release_stock(updated)
                raise

            logger.info(
                f"Bid {stored.bid_id} {bid.status.value} -> {stored.status.value} by {actor_id}",
                extra={
                    "bid_id": str(stored.bid_id),
                    "action": parsed_action.value,
                    "actor_id": actor_id,
                    "version": stored.version,
                },
            )
            self._publish(event_for(stored, parsed_action, actor_id))
            return stored

        logger.warning(
            f"Giving up on bid {bid_id} after {self._max_attempts} conflicting attempts",
            extra={"bid_id": str(bid_id), "action": parsed_action.value},
        )
        raise concurrent_modification(bid_id, self._max_attempts)

    def expire_bid(self, bid_id: Union[UUID, str]) -> Bid:
        """Explicit expiry for external jobs that want eager cleanup."""

        return self.respond_to_bid(bid_id, SYSTEM_ACTOR, BidAction.EXPIRE)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_bid(self, bid_id: Union[UUID, str], actor_id: str) -> Bid:
        """Return a bid to one of its parties (or the system actor)."""

        bid = self._load(bid_id, actor_id)
        return self._expire_if_stale(bid, self._clock())

    def list_product_bids(self, product_id: str) -> List[Bid]:
        """All bids on a product, best first. Stale bids are expired on the way."""

        now = self._clock()
        return [self._expire_if_stale(bid, now) for bid in self._store.list_by_product(product_id)]

    def get_top_bid(self, product_id: str) -> Optional[Bid]:
        """Highest-ranked active bid on a product, or None."""

        for bid in self.list_product_bids(product_id):
            if bid.is_active:
                return bid
        return None

    def list_activity(
        self,
        user_id: str,
        role: Union[PartyRole, str],
        status: Optional[Union[BidStatus, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Bid]:
        """
        Bids where `user_id` is the buyer or the seller, newest first.

        Args:
            user_id: User whose activity is listed
            role: buyer or seller
            status: Only return bids in this state (after lazy expiry)
            limit: Maximum number of bids to return
        """

        _require_id("user_id", user_id)
        try:
            party_role = PartyRole(role)
            status_filter = BidStatus(status) if status is not None else None
        except ValueError as e:
            raise ValidationError(message=str(e), code="InvalidRequest") from None
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
            raise ValidationError(
                message=f"limit must be a positive integer, got {limit!r}",
                code="InvalidRequest",
                details={"field": "limit"},
            )

        now = self._clock()
        bids = [self._expire_if_stale(bid, now) for bid in self._store.list_by_party(user_id, party_role)]
        if status_filter is not None:
            bids = [bid for bid in bids if bid.status is status_filter]
        bids.sort(key=lambda bid: bid.created_at, reverse=True)
        return bids[:limit] if limit is not None else bids

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_listing(self, product_id: str, seller_id: str, buyer_type: BuyerType, quantity: int) -> None:
        """
        Validate a new bid against the listing it targets.

        Raises:
            ProductNotFoundError: missing or inactive listing.
            ValidationError: seller mismatch, no pricing for the buyer type,
                or below the wholesale minimum quantity.
            ConflictError: InsufficientStock.
        """

        listing = self._catalog.get_listing(product_id)
        if listing is None or not listing.is_active:
            raise ProductNotFoundError(product_id)
        if listing.seller_id != seller_id:
            raise invalid_request(
                f"seller_id does not own product {product_id}",
                field="seller_id",
                product_id=product_id,
            )
        if not listing.offers(buyer_type):
            raise pricing_unavailable(product_id, buyer_type.value)
        minimum = listing.minimum_quantity(buyer_type)
        if quantity < minimum:
            raise below_minimum_quantity(quantity, minimum)
        if quantity > listing.quantity_available:
            raise insufficient_stock(product_id, quantity, listing.quantity_available)

    def _release_stock(self, bid: Bid) -> None:
        try:
            self._catalog.release_stock(bid.product_id, bid.quantity)
        except Exception:
            logger.error(
                f"Failed to release {bid.quantity} units of product {bid.product_id} reserved for bid {bid.bid_id}",
                exc_info=True,
                extra={"bid_id": str(bid.bid_id), "product_id": bid.product_id, "quantity": bid.quantity},
            )

    @staticmethod
    def _parse_action(action: Union[BidAction, str]) -> BidAction:
        try:
            return BidAction(action)
        except ValueError:
            raise ValidationError(
                message=f"Unknown action: {action!r}",
                code="InvalidAction",
                details={"action": str(action)},
            ) from None

    def _load(self, bid_id: Union[UUID, str], actor_id: str) -> Bid:
        """
        Read a bid for `actor_id`.

        For anyone but the system actor, a missing bid and someone else's bid
        are indistinguishable: both raise AuthorizationError.
        """

        is_system = actor_id == SYSTEM_ACTOR
        try:
            key = bid_id if isinstance(bid_id, UUID) else UUID(str(bid_id))
            bid = self._store.get(key)
        except (ValueError, NotFoundError):
            if is_system:
                raise NotFoundError(bid_id) from None
            raise AuthorizationError() from None

        if not is_system and bid.role_of(actor_id) is None:
            raise AuthorizationError()
        return bid

    def _commit_expiry(self, bid: Bid, now: datetime) -> Bid:
        stored = self._store.put(self._lifecycle.expire(bid, now), bid.version)
        logger.info(
            f"Bid {stored.bid_id} expired lazily",
            extra={"bid_id": str(stored.bid_id), "created_at": stored.created_at.isoformat()},
        )
        self._publish(event_for(stored, BidAction.EXPIRE, SYSTEM_ACTOR))
        return stored

    def _expire_if_stale(self, bid: Bid, now: datetime) -> Bid:
        """Return `bid`, expired and persisted first if it is past its TTL."""

        for _ in range(self._max_attempts):
            if not self._lifecycle.is_expired(bid, now):
                return bid
            try:
                return self._commit_expiry(bid, now)
            except VersionConflict:
                bid = self._store.get(bid.bid_id)
        if not self._lifecycle.is_expired(bid, now):
            return bid
        raise concurrent_modification(bid.bid_id, self._max_attempts)

    def _publish(self, event: BidEvent) -> None:
        try:
            self._notifier.publish(event)
        except Exception:
            logger.warning(
                f"Dropped {event.event_type.value} notification for bid {event.bid.bid_id}",
                exc_info=True,
                extra={"bid_id": str(event.bid.bid_id), "event_type": event.event_type.value},
            )


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "ResponsePayload",
    "NegotiationService",
]
