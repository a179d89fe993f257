"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
the domain, repositories, services and api modules, and provides a
controllable clock plus a ready-wired NegotiationService.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from bid_fixtures import FakeClock  # noqa: E402
from repositories.bid_store import InMemoryBidStore  # noqa: E402
from services.negotiation_service import NegotiationService  # noqa: E402
from services.notifications import InMemoryNotificationSink  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryBidStore:
    return InMemoryBidStore(clock=clock)


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def service(store: InMemoryBidStore, sink: InMemoryNotificationSink, clock: FakeClock) -> NegotiationService:
    return NegotiationService(store, notifier=sink, clock=clock)
