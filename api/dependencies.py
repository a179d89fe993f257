"""
FastAPI dependencies.

Wires one NegotiationService per process from the environment, and reads the
authenticated actor that the upstream identity provider put on the request.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from api.errors import to_http_exception
from domain.bid import SYSTEM_ACTOR
from domain.errors import AuthorizationError
from repositories.bid_store import BidStore, InMemoryBidStore
from services.config import NegotiationSettings, load_settings
from services.listing_catalog import ListingCatalog
from services.negotiation_service import NegotiationService
from services.notifications import LoggingNotificationSink

ACTOR_HEADER = "X-Actor-Id"


def build_store(settings: NegotiationSettings) -> BidStore:
    if settings.store_backend == "supabase":
        # Imported here so the memory backend runs without Supabase credentials.
        from repositories.client import get_supabase
        from repositories.supabase_bid_store import SupabaseBidStore

        return SupabaseBidStore(get_supabase())
    return InMemoryBidStore()


def build_listing_catalog(settings: NegotiationSettings) -> Optional[ListingCatalog]:
    """Product listings live in Supabase; the memory backend runs without them."""

    if settings.store_backend == "supabase":
        from repositories.client import get_supabase
        from repositories.supabase_listing_catalog import SupabaseListingCatalog

        return SupabaseListingCatalog(get_supabase(), max_attempts=settings.max_cas_attempts)
    return None


@lru_cache(maxsize=1)
def get_settings() -> NegotiationSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_negotiation_service() -> NegotiationService:
    settings = get_settings()
    return NegotiationService(
        build_store(settings),
        settings.lifecycle(),
        notifier=LoggingNotificationSink(),
        listing_catalog=build_listing_catalog(settings),
        max_attempts=settings.max_cas_attempts,
    )


def get_actor_id(actor_id: Optional[str] = Header(None, alias=ACTOR_HEADER)) -> str:
    """
    Authenticated caller; credentials were verified upstream.

    The system actor is internal to the ledger (expiry jobs) and is never
    accepted from a request.
    """

    if actor_id is None or not actor_id.strip():
        raise HTTPException(status_code=401, detail=f"Missing {ACTOR_HEADER} header")
    actor_id = actor_id.strip()
    if actor_id == SYSTEM_ACTOR:
        raise to_http_exception(AuthorizationError())
    return actor_id
