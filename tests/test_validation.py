from __future__ import annotations

import math
from dataclasses import replace

import pytest

from offer_ladder.config import order_bounds
from offer_ladder.models import DistributionRequest, OrderSpec
from offer_ladder.validation import (
    ErrorKind,
    InsufficientBalance,
    InvalidLadder,
    InvalidRange,
    MissingField,
    NonPositiveQuantity,
    OrderCountOutOfBounds,
    OrderTooSmall,
    ValidationError,
    validate,
    validate_ladder,
)


def test_valid_request_passes(example_request: DistributionRequest) -> None:
    assert validate(example_request) is None


@pytest.mark.parametrize("field", ["bottom_market_cap", "top_market_cap", "total_tokens", "token_supply"])
def test_nan_is_missing(example_request: DistributionRequest, field: str) -> None:
    with pytest.raises(MissingField) as exc:
        validate(replace(example_request, **{field: math.nan}))
    assert exc.value.field == field


def test_none_is_missing(example_request: DistributionRequest) -> None:
    with pytest.raises(MissingField):
        validate(replace(example_request, order_count=None))


def test_equal_caps_is_invalid_range(example_request: DistributionRequest) -> None:
    with pytest.raises(InvalidRange) as exc:
        validate(replace(example_request, top_market_cap=example_request.bottom_market_cap))
    assert exc.value.kind == ErrorKind.INVALID_RANGE
    assert exc.value.value == 100_000


def test_single_order_rejected(example_request: DistributionRequest) -> None:
    with pytest.raises(OrderCountOutOfBounds):
        validate(replace(example_request, order_count=1))


def test_min_orders_never_below_two(example_request: DistributionRequest) -> None:
    with pytest.raises(OrderCountOutOfBounds):
        validate(replace(example_request, order_count=1), min_orders=1)


def test_max_orders_ceiling(example_request: DistributionRequest) -> None:
    validate(replace(example_request, order_count=8), max_orders=8)
    with pytest.raises(OrderCountOutOfBounds) as exc:
        validate(replace(example_request, order_count=9), max_orders=8)
    assert "between 2 and 8" in str(exc.value)


def test_no_ceiling_by_default(example_request: DistributionRequest) -> None:
    validate(replace(example_request, order_count=500))


def test_zero_tokens(example_request: DistributionRequest) -> None:
    with pytest.raises(NonPositiveQuantity) as exc:
        validate(replace(example_request, total_tokens=0))
    assert exc.value.field == "total_tokens"


def test_negative_supply(example_request: DistributionRequest) -> None:
    with pytest.raises(NonPositiveQuantity) as exc:
        validate(replace(example_request, token_supply=-5))
    assert exc.value.field == "token_supply"


def test_order_too_small(example_request: DistributionRequest) -> None:
    with pytest.raises(OrderTooSmall):
        validate(replace(example_request, total_tokens=0.000001, order_count=2))


def test_insufficient_balance(example_request: DistributionRequest) -> None:
    with pytest.raises(InsufficientBalance) as exc:
        validate(replace(example_request, available_balance=1_000))
    assert exc.value.value == 500_000
    validate(replace(example_request, available_balance=500_000))


def test_first_broken_rule_wins(example_request: DistributionRequest) -> None:
    bad = replace(example_request, top_market_cap=10, order_count=1, total_tokens=0)
    with pytest.raises(InvalidRange):
        validate(bad)


def test_errors_are_value_errors(example_request: DistributionRequest) -> None:
    with pytest.raises(ValueError):
        validate(replace(example_request, total_tokens=0))
    try:
        validate(replace(example_request, total_tokens=0))
    except ValidationError as e:
        assert e.to_dict()["kind"] == "NonPositiveQuantity"


def test_batch_mode_bounds() -> None:
    config = {"ladder": {"min_orders": 2, "max_orders": 0, "batch_mode": True, "batch_max_orders": 8}}
    assert order_bounds(config) == (2, 8)
    config["ladder"]["batch_mode"] = False
    assert order_bounds(config) == (2, None)


def test_validate_ladder_rejects_duplicates() -> None:
    orders = [OrderSpec(1, 0.5, 10, 50), OrderSpec(2, 0.5, 10, 50)]
    with pytest.raises(InvalidLadder, match="Duplicate"):
        validate_ladder(orders)


def test_validate_ladder_rejects_bad_orders() -> None:
    with pytest.raises(InvalidLadder, match="No orders"):
        validate_ladder([])
    with pytest.raises(InvalidLadder, match="Order 2: price"):
        validate_ladder([OrderSpec(1, 0.5, 10, 50), OrderSpec(2, 0, 10, 0)])
    with pytest.raises(InvalidLadder, match="Too many"):
        validate_ladder([OrderSpec(i, i, 1, i) for i in range(1, 4)], max_orders=2)


def test_nan_balance_is_missing(example_request: DistributionRequest) -> None:
    with pytest.raises(MissingField) as exc:
        validate(replace(example_request, available_balance=math.nan))
    assert exc.value.field == "available_balance"
