"""
Notification sinks for bid events.

Delivery is fire-and-forget from the ledger's point of view: the service
publishes after the write is committed, and a failing sink is logged, never
propagated.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import DefaultDict, List, Protocol

from domain.events import BidEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def publish(self, event: BidEvent) -> None: ...


class LoggingNotificationSink:
    """Writes each event to the log. Default sink when nothing else is wired."""

    def publish(self, event: BidEvent) -> None:
        logger.info(
            f"{event.event_type.value} for bid {event.bid.bid_id}",
            extra={
                "event_type": event.event_type.value,
                "bid_id": str(event.bid.bid_id),
                "product_id": event.bid.product_id,
                "actor_id": event.actor_id,
                "recipients": list(event.recipients),
            },
        )


class InMemoryNotificationSink:
    """Per-user inbox of events, one entry per recipient."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._inbox: DefaultDict[str, List[BidEvent]] = defaultdict(list)
        self._events: List[BidEvent] = []

    def publish(self, event: BidEvent) -> None:
        with self._lock:
            self._events.append(event)
            for user_id in event.recipients:
                self._inbox[user_id].append(event)

    @property
    def events(self) -> List[BidEvent]:
        with self._lock:
            return list(self._events)

    def for_user(self, user_id: str) -> List[BidEvent]:
        with self._lock:
            return list(self._inbox.get(user_id, []))


__all__ = ["NotificationSink", "LoggingNotificationSink", "InMemoryNotificationSink"]
