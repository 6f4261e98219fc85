"""Shared fixtures."""

from __future__ import annotations

import pytest

from offer_ladder.models import DistributionRequest

ACCOUNT = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
ISSUER = "rrrrrrrrrrrrrrrrrrrrBZbvji"


@pytest.fixture
def account() -> str:
    return ACCOUNT


@pytest.fixture
def issuer() -> str:
    return ISSUER


@pytest.fixture
def example_request() -> DistributionRequest:
    """Five rungs from 100k to 1M market cap on a 10M supply."""
    return DistributionRequest(
        bottom_market_cap=100_000,
        top_market_cap=1_000_000,
        order_count=5,
        total_tokens=500_000,
        token_supply=10_000_000,
    )
