"""Input rules for ladder requests.

`validate` checks a DistributionRequest before anything is calculated and
raises the first rule it finds broken. Rules are checked in a fixed order so a
caller always gets the same error for the same input:

    MissingField -> InvalidRange -> OrderCountOutOfBounds ->
    NonPositiveQuantity -> OrderTooSmall -> InsufficientBalance
"""

import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

import offer_ladder.constants as C
from offer_ladder.models import DistributionRequest, OrderSpec, is_missing

log = logging.getLogger("offer_ladder.validation")

NUMERIC_FIELDS = ("bottom_market_cap", "top_market_cap", "order_count", "total_tokens", "token_supply")


class ErrorKind(StrEnum):
    MISSING_FIELD = "MissingField"
    INVALID_RANGE = "InvalidRange"
    ORDER_COUNT_OUT_OF_BOUNDS = "OrderCountOutOfBounds"
    NON_POSITIVE_QUANTITY = "NonPositiveQuantity"
    ORDER_TOO_SMALL = "OrderTooSmall"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_LADDER = "InvalidLadder"


class ValidationError(ValueError):
    kind: ErrorKind

    def __init__(self, message: str, *, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        return {"kind": str(self.kind), "field": self.field, "value": self.value, "message": str(self)}


class MissingField(ValidationError):
    kind = ErrorKind.MISSING_FIELD


class InvalidRange(ValidationError):
    kind = ErrorKind.INVALID_RANGE


class OrderCountOutOfBounds(ValidationError):
    kind = ErrorKind.ORDER_COUNT_OUT_OF_BOUNDS


class NonPositiveQuantity(ValidationError):
    kind = ErrorKind.NON_POSITIVE_QUANTITY


class OrderTooSmall(ValidationError):
    kind = ErrorKind.ORDER_TOO_SMALL


class InsufficientBalance(ValidationError):
    kind = ErrorKind.INSUFFICIENT_BALANCE


class InvalidLadder(ValidationError):
    kind = ErrorKind.INVALID_LADDER


def validate(
    request: DistributionRequest,
    *,
    min_orders: int = C.MIN_ORDERS,
    max_orders: int | None = None,
    minimum_order_size: float = C.MIN_ORDER_SIZE,
) -> None:
    """Raise the first ValidationError that applies to `request`.

    Args:
        request: The ladder request to check.
        min_orders: Smallest accepted order count. Below 2 the calculator would
            divide by zero, so values under 2 are raised to 2.
        max_orders: Largest accepted order count, None for no ceiling.
        minimum_order_size: Smallest token quantity a single rung may sell.

    Raises:
        ValidationError: One of its subclasses, carrying the offending field and value.
    """
    for name in NUMERIC_FIELDS:
        value = getattr(request, name, None)
        if is_missing(value):
            raise MissingField(f"{name} is required", field=name, value=value)
    # Optional, but NaN would slip past the balance comparison
    if request.available_balance is not None and is_missing(request.available_balance):
        raise MissingField("available_balance is not a number", field="available_balance", value=None)

    if request.bottom_market_cap >= request.top_market_cap:
        raise InvalidRange(
            f"Bottom market cap ({request.bottom_market_cap}) must be less than top market cap "
            f"({request.top_market_cap})",
            field="bottom_market_cap",
            value=request.bottom_market_cap,
        )

    lo = max(min_orders, C.MIN_ORDERS)
    if request.order_count < lo or (max_orders is not None and request.order_count > max_orders):
        bound = f"between {lo} and {max_orders}" if max_orders is not None else f"at least {lo}"
        raise OrderCountOutOfBounds(
            f"Number of orders must be {bound}, got {request.order_count}",
            field="order_count",
            value=request.order_count,
        )

    for name in ("total_tokens", "token_supply", "bottom_market_cap", "top_market_cap"):
        value = getattr(request, name)
        if value <= 0:
            raise NonPositiveQuantity(f"{name} must be greater than 0, got {value}", field=name, value=value)

    per_order = request.tokens_per_order
    if per_order < minimum_order_size:
        raise OrderTooSmall(
            f"Each order would be too small ({per_order}). Minimum order size is {minimum_order_size}",
            field="total_tokens",
            value=per_order,
        )

    balance = request.available_balance
    if balance is not None and request.total_tokens > balance:
        raise InsufficientBalance(
            f"You can't sell more tokens than you hold. Balance: {balance}, trying to sell: {request.total_tokens}",
            field="total_tokens",
            value=request.total_tokens,
        )
    log.debug("Request OK: %s orders over %s..%s", request.order_count, request.bottom_market_cap, request.top_market_cap)


def validate_ladder(
    orders: Sequence[OrderSpec],
    *,
    max_orders: int | None = None,
    minimum_order_size: float = C.MIN_ORDER_SIZE,
) -> None:
    """Check a ladder that did not come straight out of `calculate` (edited or supplied by a client)."""
    if not orders:
        raise InvalidLadder("No orders provided", field="orders", value=0)
    if max_orders is not None and len(orders) > max_orders:
        raise InvalidLadder(f"Too many orders. Maximum allowed: {max_orders}", field="orders", value=len(orders))

    for pos, order in enumerate(orders, start=1):
        if is_missing(order.price) or order.price <= 0:
            raise InvalidLadder(f"Order {pos}: price must be greater than 0", field="price", value=order.price)
        if is_missing(order.amount) or order.amount <= 0:
            raise InvalidLadder(f"Order {pos}: amount must be greater than 0", field="amount", value=order.amount)
        if order.amount < minimum_order_size:
            raise InvalidLadder(
                f"Order {pos}: amount must be at least {minimum_order_size}", field="amount", value=order.amount
            )

    prices = [o.price for o in orders]
    if len(set(prices)) != len(prices):
        raise InvalidLadder("Duplicate order prices found", field="price", value=prices)
