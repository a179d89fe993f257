"""
Negotiation settings.

Values come from the process environment, with the project `.env` loaded
first (the same file the Supabase client reads).

Environment variables (all optional):
- BID_TTL_HOURS: hours before an untouched active bid expires (default 48)
- BID_MAX_CAS_ATTEMPTS: read-validate-write attempts per response (default 3)
- BID_STORE_BACKEND: "memory" or "supabase" (default memory)
- SELLER_COUNTER_DIRECTION / BUYER_COUNTER_DIRECTION: "up" or "down" (default up)
- LOG_LEVEL: logging level name for the API process (default INFO)
- CORS_ALLOW_ORIGINS: comma-separated browser origins allowed to call the API
  (default "*")
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from domain.lifecycle import BidLifecycle, CounterDirection, CounterOfferPolicy

env_path = Path(__file__).parent.parent / ".env"

STORE_BACKENDS = ("memory", "supabase")


@dataclass(frozen=True, slots=True)
class NegotiationSettings:
    bid_ttl: timedelta = timedelta(hours=48)
    max_cas_attempts: int = 3
    store_backend: str = "memory"
    seller_counter_direction: CounterDirection = CounterDirection.UP
    buyer_counter_direction: CounterDirection = CounterDirection.UP
    log_level: str = "INFO"
    cors_allow_origins: Tuple[str, ...] = ("*",)

    def __post_init__(self) -> None:
        if self.bid_ttl <= timedelta(0):
            raise ValueError("BID_TTL_HOURS must be positive")
        if self.max_cas_attempts < 1:
            raise ValueError("BID_MAX_CAS_ATTEMPTS must be >= 1")
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(f"BID_STORE_BACKEND must be one of {STORE_BACKENDS}, got {self.store_backend!r}")

    def lifecycle(self) -> BidLifecycle:
        return BidLifecycle(
            ttl=self.bid_ttl,
            policy=CounterOfferPolicy(
                seller_direction=self.seller_counter_direction,
                buyer_direction=self.buyer_counter_direction,
            ),
        )


def _direction(environ: Mapping[str, str], name: str) -> CounterDirection:
    raw = environ.get(name, CounterDirection.UP.value).strip().lower()
    try:
        return CounterDirection(raw)
    except ValueError:
        raise ValueError(f"{name} must be 'up' or 'down', got {raw!r}") from None


def _number(environ: Mapping[str, str], name: str, default: str, cast: type) -> float | int:
    raw = environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _origins(environ: Mapping[str, str]) -> Tuple[str, ...]:
    origins = tuple(o.strip() for o in environ.get("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip())
    if not origins:
        raise ValueError("CORS_ALLOW_ORIGINS must name at least one origin")
    return origins


def load_settings(environ: Optional[Mapping[str, str]] = None) -> NegotiationSettings:
    """
    Build settings from `environ` (defaults to os.environ after loading .env).

    Raises:
        ValueError: if any value is malformed.
    """

    if environ is None:
        load_dotenv(dotenv_path=env_path)
        environ = os.environ

    return NegotiationSettings(
        bid_ttl=timedelta(hours=_number(environ, "BID_TTL_HOURS", "48", float)),
        max_cas_attempts=int(_number(environ, "BID_MAX_CAS_ATTEMPTS", "3", int)),
        store_backend=environ.get("BID_STORE_BACKEND", "memory").strip().lower(),
        seller_counter_direction=_direction(environ, "SELLER_COUNTER_DIRECTION"),
        buyer_counter_direction=_direction(environ, "BUYER_COUNTER_DIRECTION"),
        log_level=environ.get("LOG_LEVEL", "INFO").strip().upper(),
        cors_allow_origins=_origins(environ),
    )


__all__ = ["NegotiationSettings", "load_settings"]
