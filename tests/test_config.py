"""
Tests for `services/config.py`.

Covers:
- Defaults when nothing is set.
- Parsing and normalization of every variable.
- Malformed values raise ValueError.
"""

from datetime import timedelta

import pytest

from domain.lifecycle import CounterDirection
from services.config import NegotiationSettings, load_settings


def test_defaults() -> None:
    settings = load_settings({})

    assert settings == NegotiationSettings()
    assert settings.bid_ttl == timedelta(hours=48)
    assert settings.max_cas_attempts == 3
    assert settings.store_backend == "memory"
    assert settings.log_level == "INFO"


def test_values_are_parsed_and_normalized() -> None:
    settings = load_settings(
        {
            "BID_TTL_HOURS": "1.5",
            "BID_MAX_CAS_ATTEMPTS": "5",
            "BID_STORE_BACKEND": " Supabase ",
            "SELLER_COUNTER_DIRECTION": "UP",
            "BUYER_COUNTER_DIRECTION": "down",
            "LOG_LEVEL": "debug",
            "CORS_ALLOW_ORIGINS": "https://mandi.example, https://admin.mandi.example",
        }
    )

    assert settings.bid_ttl == timedelta(minutes=90)
    assert settings.max_cas_attempts == 5
    assert settings.store_backend == "supabase"
    assert settings.seller_counter_direction is CounterDirection.UP
    assert settings.buyer_counter_direction is CounterDirection.DOWN
    assert settings.log_level == "DEBUG"
    assert settings.cors_allow_origins == ("https://mandi.example", "https://admin.mandi.example")


def test_lifecycle_carries_ttl_and_policy() -> None:
    lifecycle = load_settings({"BID_TTL_HOURS": "24", "BUYER_COUNTER_DIRECTION": "down"}).lifecycle()

    assert lifecycle.ttl == timedelta(hours=24)
    assert lifecycle.policy.buyer_direction is CounterDirection.DOWN
    assert lifecycle.policy.seller_direction is CounterDirection.UP


@pytest.mark.parametrize(
    "environ",
    [
        {"BID_TTL_HOURS": "soon"},
        {"BID_TTL_HOURS": "0"},
        {"BID_TTL_HOURS": "-2"},
        {"BID_MAX_CAS_ATTEMPTS": "0"},
        {"BID_MAX_CAS_ATTEMPTS": "2.5"},
        {"BID_STORE_BACKEND": "redis"},
        {"SELLER_COUNTER_DIRECTION": "sideways"},
        {"CORS_ALLOW_ORIGINS": " , "},
    ],
)
def test_malformed_values_raise(environ) -> None:
    with pytest.raises(ValueError):
        load_settings(environ)
