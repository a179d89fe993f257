"""
Domain: Bid lifecycle state machine.

Transitions:
- pending   -> accepted | rejected | countered   (seller)
- pending   -> withdrawn                         (buyer)
- countered -> accepted | rejected | countered   (the party that did not
               author the open counter offer; the buyer after a seller counter)
- pending | countered -> expired                 (system, or lazily after TTL)
- accepted, rejected, expired, withdrawn are terminal.

Counter offers must move the effective amount by a non-zero delta in the
direction configured for the countering party (CounterOfferPolicy).

This module is pure: no storage, no clock. Callers pass `now` explicitly and
the store assigns versions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from .bid import (
    SYSTEM_ACTOR,
    Bid,
    BidAction,
    BidMessage,
    BidStatus,
    CounterOffer,
    PartyRole,
    is_positive_amount,
    is_positive_quantity,
)
from .errors import AuthorizationError, invalid_counter_offer, invalid_transition
from .time import require_utc_timestamp

DEFAULT_BID_TTL = timedelta(hours=48)

_RESULT_STATUS = {
    BidAction.ACCEPT: BidStatus.ACCEPTED,
    BidAction.REJECT: BidStatus.REJECTED,
    BidAction.COUNTER: BidStatus.COUNTERED,
    BidAction.WITHDRAW: BidStatus.WITHDRAWN,
    BidAction.EXPIRE: BidStatus.EXPIRED,
}

# Actions a party may take on a pending bid, and who may take them.
_PENDING_ACTORS = {
    BidAction.ACCEPT: PartyRole.SELLER,
    BidAction.REJECT: PartyRole.SELLER,
    BidAction.COUNTER: PartyRole.SELLER,
    BidAction.WITHDRAW: PartyRole.BUYER,
}

_COUNTERED_ACTIONS = frozenset({BidAction.ACCEPT, BidAction.REJECT, BidAction.COUNTER})


class CounterDirection(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True, slots=True)
class CounterOfferPolicy:
    """
    Direction a counter offer must move the amount on the table, per author.

    The default has both parties countering upward, so a negotiation can never
    cycle back to an amount already offered.
    """

    seller_direction: CounterDirection = CounterDirection.UP
    buyer_direction: CounterDirection = CounterDirection.UP

    def direction_for(self, role: PartyRole) -> CounterDirection:
        if role is PartyRole.SELLER:
            return self.seller_direction
        return self.buyer_direction

    def validate(self, role: PartyRole, current: Decimal, proposed: Decimal) -> None:
        direction = self.direction_for(role)
        delta = proposed - current
        if delta == 0:
            raise invalid_counter_offer(
                "amount must differ from the current offer",
                current=current,
                proposed=proposed,
            )
        if direction is CounterDirection.UP and delta < 0:
            raise invalid_counter_offer(
                f"{role.value} counter must be above {current}",
                current=current,
                proposed=proposed,
                direction=direction.value,
            )
        if direction is CounterDirection.DOWN and delta > 0:
            raise invalid_counter_offer(
                f"{role.value} counter must be below {current}",
                current=current,
                proposed=proposed,
                direction=direction.value,
            )


@dataclass(frozen=True, slots=True)
class BidLifecycle:
    ttl: timedelta = DEFAULT_BID_TTL
    policy: CounterOfferPolicy = field(default_factory=CounterOfferPolicy)

    def __post_init__(self) -> None:
        if self.ttl <= timedelta(0):
            raise ValueError("ttl must be positive")

    def responder(self, bid: Bid) -> Optional[PartyRole]:
        """Party whose move it is on an active bid, ignoring withdraw."""

        if bid.status is BidStatus.PENDING:
            return PartyRole.SELLER
        if bid.status is BidStatus.COUNTERED and bid.counter_offer is not None:
            return bid.counter_offer.offered_by.opposite
        return None

    def is_expired(self, bid: Bid, now: datetime) -> bool:
        """True when an active bid has outlived the TTL and should be expired."""

        require_utc_timestamp("now", now)
        return bid.is_active and now - bid.created_at > self.ttl

    def next_state(self, bid: Bid, action: BidAction, actor_id: str) -> BidStatus:
        """
        Pure transition function.

        Raises AuthorizationError for outsiders or the wrong party and
        StateError (InvalidTransition) when the state does not allow the action.
        Outsiders are rejected before the state is consulted so that terminal
        bids do not reveal themselves to them.
        """

        if action is BidAction.EXPIRE:
            if actor_id != SYSTEM_ACTOR:
                raise AuthorizationError()
            if bid.is_terminal:
                raise invalid_transition(bid.status.value, action.value)
            return BidStatus.EXPIRED

        role = bid.role_of(actor_id)
        if role is None:
            raise AuthorizationError()

        if bid.status is BidStatus.PENDING:
            required = _PENDING_ACTORS[action]
        elif bid.status is BidStatus.COUNTERED and action in _COUNTERED_ACTIONS:
            required = self.responder(bid)
        else:
            raise invalid_transition(bid.status.value, action.value)

        if role is not required:
            raise AuthorizationError()
        return _RESULT_STATUS[action]

    def apply(
        self,
        bid: Bid,
        action: BidAction,
        actor_id: str,
        now: datetime,
        *,
        amount: Optional[Decimal] = None,
        quantity: Optional[int] = None,
        message: Optional[BidMessage] = None,
    ) -> Bid:
        """
        Return the bid as it looks after `action`. The version is left as is.

        `amount`/`quantity`/`message` are only read for counter offers;
        `message` is also kept as the response note on accept and reject.
        """

        require_utc_timestamp("now", now)
        status = self.next_state(bid, action, actor_id)

        if action is BidAction.ACCEPT:
            return replace(
                bid,
                status=status,
                amount=bid.effective_amount,
                quantity=bid.effective_quantity,
                counter_offer=None,
                response_message=message,
                updated_at=now,
            )
        if action is BidAction.REJECT:
            return replace(
                bid,
                status=status,
                counter_offer=None,
                response_message=message,
                updated_at=now,
            )
        if action is BidAction.COUNTER:
            return replace(
                bid,
                status=status,
                counter_offer=self._counter_offer(bid, actor_id, now, amount, quantity, message),
                updated_at=now,
            )
        return replace(bid, status=status, counter_offer=None, updated_at=now)

    def expire(self, bid: Bid, now: datetime) -> Bid:
        return self.apply(bid, BidAction.EXPIRE, SYSTEM_ACTOR, now)

    def _counter_offer(
        self,
        bid: Bid,
        actor_id: str,
        now: datetime,
        amount: Optional[Decimal],
        quantity: Optional[int],
        message: Optional[BidMessage],
    ) -> CounterOffer:
        role = bid.role_of(actor_id)
        if role is None:
            raise AuthorizationError()

        if amount is None or not is_positive_amount(amount):
            raise invalid_counter_offer("amount must be a positive decimal", proposed=amount)
        if quantity is None:
            quantity = bid.effective_quantity
        elif not is_positive_quantity(quantity):
            raise invalid_counter_offer("quantity must be a positive integer", quantity=quantity)

        self.policy.validate(role, bid.effective_amount, amount)
        return CounterOffer(
            amount=amount,
            quantity=quantity,
            created_at=now,
            offered_by=role,
            message=message,
        )


__all__ = [
    "DEFAULT_BID_TTL",
    "CounterDirection",
    "CounterOfferPolicy",
    "BidLifecycle",
]
