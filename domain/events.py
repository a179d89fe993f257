"""
Domain: Events emitted after a bid change is committed.

Events are facts about committed state. Consumers (notifications, translation
of follow-up messages, analytics) receive them after the write; nothing they
do can undo the change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple

from .bid import Bid, BidAction, BidStatus


class BidEventType(str, Enum):
    BID_PLACED = "BidPlaced"
    BID_ACCEPTED = "BidAccepted"
    BID_REJECTED = "BidRejected"
    BID_COUNTERED = "BidCountered"
    BID_WITHDRAWN = "BidWithdrawn"
    BID_EXPIRED = "BidExpired"

    @staticmethod
    def for_status(status: BidStatus) -> "BidEventType":
        return _EVENT_FOR_STATUS[status]


_EVENT_FOR_STATUS = {
    BidStatus.PENDING: BidEventType.BID_PLACED,
    BidStatus.ACCEPTED: BidEventType.BID_ACCEPTED,
    BidStatus.REJECTED: BidEventType.BID_REJECTED,
    BidStatus.COUNTERED: BidEventType.BID_COUNTERED,
    BidStatus.WITHDRAWN: BidEventType.BID_WITHDRAWN,
    BidStatus.EXPIRED: BidEventType.BID_EXPIRED,
}


@dataclass(frozen=True, slots=True)
class BidEvent:
    event_type: BidEventType
    bid: Bid
    actor_id: str
    occurred_at: datetime

    @property
    def recipients(self) -> Tuple[str, ...]:
        """
        Users who should hear about this event.

        The counter-party of the actor; both parties when the system acted.
        """

        if self.actor_id == self.bid.buyer_id:
            return (self.bid.seller_id,)
        if self.actor_id == self.bid.seller_id:
            return (self.bid.buyer_id,)
        return (self.bid.buyer_id, self.bid.seller_id)


def event_for(bid: Bid, action: BidAction | None, actor_id: str) -> BidEvent:
    """Build the event describing `bid`'s new state; action None means placement."""

    event_type = BidEventType.BID_PLACED if action is None else BidEventType.for_status(bid.status)
    return BidEvent(event_type=event_type, bid=bid, actor_id=actor_id, occurred_at=bid.updated_at)


__all__ = ["BidEventType", "BidEvent", "event_for"]
