from __future__ import annotations

from dataclasses import replace

import pytest

from offer_ladder.constants import Spread
from offer_ladder.distribution import calculate, estimate_required_reserve, fibonacci_prices, summarize
from offer_ladder.models import DistributionRequest
from offer_ladder.validation import InvalidRange, NonPositiveQuantity, OrderCountOutOfBounds


def test_linear_example(example_request: DistributionRequest) -> None:
    orders = calculate(example_request)

    assert [o.index for o in orders] == [1, 2, 3, 4, 5]
    assert [o.price for o in orders] == pytest.approx([0.01, 0.0325, 0.055, 0.0775, 0.1])
    assert [o.market_cap for o in orders] == pytest.approx([100_000, 325_000, 550_000, 775_000, 1_000_000])
    assert all(o.amount == 100_000 for o in orders)


@pytest.mark.parametrize("spread", list(Spread))
@pytest.mark.parametrize("n", [2, 3, 7, 40])
def test_ladder_shape(example_request: DistributionRequest, spread: Spread, n: int) -> None:
    req = replace(example_request, order_count=n, spread=spread)
    orders = calculate(req)

    assert len(orders) == n
    prices = [o.price for o in orders]
    assert all(a < b for a, b in zip(prices, prices[1:]))
    assert sum(o.amount for o in orders) == pytest.approx(req.total_tokens)
    for o in orders:
        assert o.price * req.token_supply == o.market_cap
    assert prices[0] == pytest.approx(0.01)
    assert prices[-1] == pytest.approx(0.1)


def test_logarithmic_concentrates_low(example_request: DistributionRequest) -> None:
    for n in (3, 5, 10):
        linear = calculate(replace(example_request, order_count=n))
        log_ = calculate(replace(example_request, order_count=n, use_logarithmic=True))
        for lin, lg in list(zip(linear, log_))[: n // 2 + 1]:
            assert lg.price <= lin.price


def test_logarithmic_equal_ratios(example_request: DistributionRequest) -> None:
    orders = calculate(replace(example_request, use_logarithmic=True))
    ratios = [b.price / a.price for a, b in zip(orders, orders[1:])]
    assert ratios == pytest.approx([10 ** 0.25] * 4)


def test_use_logarithmic_maps_to_spread(example_request: DistributionRequest) -> None:
    assert replace(example_request, use_logarithmic=True).effective_spread == Spread.LOGARITHMIC
    assert example_request.effective_spread == Spread.LINEAR
    assert replace(example_request, use_logarithmic=True, spread=Spread.FIBONACCI).effective_spread == Spread.FIBONACCI


def test_fibonacci_gaps_widen() -> None:
    prices = fibonacci_prices(1.0, 12.0, 5)
    assert prices == pytest.approx([1.0, 2.0, 4.0, 7.0, 12.0])
    gaps = [b - a for a, b in zip(prices, prices[1:])]
    assert gaps == sorted(gaps)


def test_calculate_validates_first(example_request: DistributionRequest) -> None:
    with pytest.raises(InvalidRange):
        calculate(replace(example_request, top_market_cap=100_000))
    with pytest.raises(OrderCountOutOfBounds):
        calculate(replace(example_request, order_count=1))
    with pytest.raises(NonPositiveQuantity):
        calculate(replace(example_request, total_tokens=0))


def test_calculate_explicit_ceiling(example_request: DistributionRequest) -> None:
    with pytest.raises(OrderCountOutOfBounds):
        calculate(replace(example_request, order_count=9), max_orders=8)


def test_degenerate_step_raises(example_request: DistributionRequest) -> None:
    req = replace(example_request, bottom_market_cap=1.0, top_market_cap=1.0 + 1e-15, token_supply=1.0, order_count=50)
    with pytest.raises(ValueError, match="too small"):
        calculate(req)


def test_summary(example_request: DistributionRequest) -> None:
    summary = summarize(calculate(example_request))

    assert summary.order_count == 5
    assert summary.total_tokens == pytest.approx(500_000)
    # 100k tokens at each of 0.01, 0.0325, 0.055, 0.0775, 0.1
    assert summary.total_xrp == pytest.approx(27_500)
    assert summary.average_price == pytest.approx(0.055)
    assert summary.min_price == pytest.approx(0.01)
    assert summary.max_price == pytest.approx(0.1)
    assert summary.total_fee_drops == 60
    assert summary.required_reserve_xrp == estimate_required_reserve(5) == 20


def test_summary_empty() -> None:
    assert summarize([]) is None
