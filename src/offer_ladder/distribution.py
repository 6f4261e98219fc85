import logging
import math
from collections.abc import Callable, Sequence

import offer_ladder.constants as C
from offer_ladder.config import cfg, order_bounds
from offer_ladder.models import DistributionRequest, OrderSpec, OrderSummary
from offer_ladder.validation import validate

log = logging.getLogger("offer_ladder.distribution")

PriceFn = Callable[[float, float, int], list[float]]


def linear_prices(bottom: float, top: float, n: int) -> list[float]:
    step = (top - bottom) / (n - 1)
    return [bottom + step * i for i in range(n)]


def logarithmic_prices(bottom: float, top: float, n: int) -> list[float]:
    """Equal ratios between rungs, so more rungs sit near the bottom price."""
    log_bottom = math.log(bottom)
    log_step = (math.log(top) - log_bottom) / (n - 1)
    # exp(log(x)) drifts by an ulp; keep the endpoints exact
    inner = [math.exp(log_bottom + log_step * i) for i in range(1, n - 1)]
    return [bottom, *inner, top]


def fibonacci_prices(bottom: float, top: float, n: int) -> list[float]:
    """Gaps grow with the Fibonacci sequence; first rung at `bottom`, last at `top`."""
    fib = [1, 1]
    while len(fib) < n:
        fib.append(fib[-1] + fib[-2])
    cumulative = []
    running = 0
    for f in fib[:n]:
        running += f
        cumulative.append(running)
    first, span = cumulative[0], cumulative[-1] - cumulative[0]
    return [bottom + (top - bottom) * (c - first) / span for c in cumulative]


_SPREADS: dict[C.Spread, PriceFn] = {
    C.Spread.LINEAR: linear_prices,
    C.Spread.LOGARITHMIC: logarithmic_prices,
    C.Spread.FIBONACCI: fibonacci_prices,
}


def calculate(
    request: DistributionRequest,
    *,
    min_orders: int | None = None,
    max_orders: int | None = None,
    minimum_order_size: float | None = None,
) -> list[OrderSpec]:
    """Turn a market-cap range into a ladder of equally sized sell orders.

    Bounds left as None come from the config file (see `order_bounds`).

    Raises:
        ValidationError: If the request breaks an input rule.
        ValueError: If two rungs land on the same price (the range is too
            narrow for the float resolution at this magnitude).
    """
    cfg_min, cfg_max = order_bounds()
    validate(
        request,
        min_orders=cfg_min if min_orders is None else min_orders,
        max_orders=cfg_max if max_orders is None else max_orders,
        minimum_order_size=(
            cfg["ladder"]["minimum_order_size"] if minimum_order_size is None else minimum_order_size
        ),
    )

    spread = request.effective_spread
    bottom_price, top_price = request.price_range
    prices = _SPREADS[spread](bottom_price, top_price, request.order_count)
    tokens_per_order = request.tokens_per_order

    prices.sort()
    for a, b in zip(prices, prices[1:]):
        if not a < b:
            raise ValueError(f"Price step too small to separate rungs at {a!r}; widen the market-cap range")

    orders = [
        OrderSpec(
            index=i + 1,
            price=price,
            amount=tokens_per_order,
            market_cap=price * request.token_supply,
        )
        for i, price in enumerate(prices)
    ]
    log.debug("Calculated %s %s orders %.8g..%.8g", len(orders), spread, prices[0], prices[-1])
    return orders


def estimate_required_reserve(order_count: int, config: dict | None = None) -> float:
    """XRP the account must hold: base reserve plus one owner reserve per open offer."""
    fees = (config or cfg)["fees"]
    base = fees.get("base_reserve_xrp", C.BASE_RESERVE_XRP)
    return base + order_count * fees.get("owner_reserve_xrp", C.OWNER_RESERVE_XRP)


def summarize(orders: Sequence[OrderSpec], fee_drops: int = C.BASE_FEE_DROPS) -> OrderSummary | None:
    if not orders:
        return None

    total_tokens = sum(o.amount for o in orders)
    total_xrp = sum(o.total_xrp for o in orders)
    prices = [o.price for o in orders]
    return OrderSummary(
        order_count=len(orders),
        total_tokens=total_tokens,
        total_xrp=total_xrp,
        average_price=total_xrp / total_tokens,
        min_price=min(prices),
        max_price=max(prices),
        total_fee_drops=fee_drops * len(orders),
        required_reserve_xrp=estimate_required_reserve(len(orders)),
    )
