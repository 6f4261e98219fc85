from collections.abc import Awaitable, Callable, Sequence
from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal, localcontext
import logging
import string

from xrpl.core.addresscodec import is_valid_classic_address
from xrpl.models.transactions import OfferCreateFlag

import offer_ladder.constants as C
from offer_ladder.models import OrderSpec, TokenAmount, TransactionDescriptor

log = logging.getLogger("offer_ladder.builder")

# Async helpers, same shape as LedgerClient's methods
AwaitInt = Callable[[], Awaitable[int]]
AwaitSeq = Callable[[str], Awaitable[int]]

_HEX = set(string.hexdigits)
# Longest plain-text code that still fits in 20 bytes once hex-encoded
_MAX_TEXT_CODE = C.HEX_CURRENCY_LENGTH // 2


class BuildError(ValueError):
    """A ladder or token identifier that can't become a valid OfferCreate."""


def normalize_currency_code(code: str) -> str:
    """Return `code` in one of the two encodings the ledger accepts.

    - up to 3 characters: padded with NUL (or truncated) to exactly 3 ASCII characters
    - 40 hex characters: already ledger-encoded, returned unchanged
    - 4..20 characters: ASCII bytes as upper-case hex, right-padded with "0" to 40
    """
    if not code:
        raise BuildError("Currency code is empty")
    if not code.isascii():
        raise BuildError(f"Currency code must be ASCII: {code!r}")

    if len(code) <= C.STANDARD_CURRENCY_LENGTH:
        return code.ljust(C.STANDARD_CURRENCY_LENGTH, "\0")[: C.STANDARD_CURRENCY_LENGTH]
    if len(code) == C.HEX_CURRENCY_LENGTH and set(code) <= _HEX:
        return code
    if len(code) > _MAX_TEXT_CODE:
        raise BuildError(f"Currency code too long ({len(code)} chars): {code!r}")
    return code.encode("ascii").hex().upper().ljust(C.HEX_CURRENCY_LENGTH, "0")


def xrp_to_drops_floor(xrp: float) -> int:
    """XRP -> drops, truncated. Never asks for a drop more than the ladder priced in."""
    drops = Decimal(repr(xrp)) * C.DROPS_PER_XRP
    return int(drops.to_integral_value(rounding=ROUND_FLOOR))


def format_token_value(amount: float) -> str:
    """Plain decimal string (no exponent) cut down to the ledger's IOU precision."""
    with localcontext() as ctx:
        ctx.prec = C.IOU_PRECISION
        ctx.rounding = ROUND_DOWN
        value = +Decimal(repr(amount))
    return format(value.normalize(), "f")


def _check_address(address: str, what: str) -> None:
    if not address:
        raise BuildError(f"{what} address is empty")
    if not is_valid_classic_address(address):
        raise BuildError(f"{what} address is not a valid classic address: {address!r}")


def build_offers(
    orders: Sequence[OrderSpec],
    account: str,
    currency_code: str,
    issuer: str,
    *,
    sequence: int | None = None,
    last_ledger_sequence: int | None = None,
    fee_drops: int = C.BASE_FEE_DROPS,
    flags: int = OfferCreateFlag.TF_SELL,
) -> list[TransactionDescriptor]:
    """Build one sell-offer descriptor per order, in order.

    Args:
        orders: The ladder, lowest price first.
        account: Address selling the token.
        currency_code: Token code in any form `normalize_currency_code` accepts.
        issuer: Token issuer address.
        sequence: Account sequence for the first offer; the rest follow consecutively.
            None leaves Sequence for the wallet to fill.
        last_ledger_sequence: Stamped on every offer when given.
        fee_drops: Flat per-transaction fee.
        flags: OfferCreate flags, tfSell by default.

    Raises:
        BuildError: Nothing is returned if any identifier or order is unusable.
    """
    if not orders:
        raise BuildError("No orders to create")
    _check_address(account, "Account")
    _check_address(issuer, "Issuer")
    currency = normalize_currency_code(currency_code)

    for order in orders:
        if not order.price > 0 or not order.amount > 0:
            raise BuildError(f"Order {order.index}: price and amount must be greater than 0")

    descriptors = []
    for i, order in enumerate(orders):
        descriptors.append(
            TransactionDescriptor(
                account=account,
                taker_gets=TokenAmount(currency=currency, issuer=issuer, value=format_token_value(order.amount)),
                taker_pays_drops=xrp_to_drops_floor(order.total_xrp),
                fee_drops=fee_drops,
                flags=int(flags),
                sequence=None if sequence is None else sequence + i,
                last_ledger_sequence=last_ledger_sequence,
            )
        )
    log.debug("Built %s OfferCreate for %s (%s.%s)", len(descriptors), account, currency_code, issuer)
    return descriptors


async def build(
    orders: Sequence[OrderSpec],
    account: str,
    currency_code: str,
    issuer: str,
    *,
    next_sequence: AwaitSeq | None = None,
    validated_ledger_index: AwaitInt | None = None,
    horizon: int = C.HORIZON,
    fee_drops: int = C.BASE_FEE_DROPS,
) -> list[TransactionDescriptor]:
    """`build_offers` with Sequence/LastLedgerSequence read from the ledger.

    Each source is awaited once per build, not once per offer. Input is
    checked before any source is consulted.
    """
    build_offers(orders, account, currency_code, issuer, fee_drops=fee_drops)

    seq = await next_sequence(account) if next_sequence else None
    lls = (await validated_ledger_index()) + horizon if validated_ledger_index else None
    log.info("Building %s offers for %s starting at sequence %s", len(orders), account, seq)
    return build_offers(
        orders,
        account,
        currency_code,
        issuer,
        sequence=seq,
        last_ledger_sequence=lls,
        fee_drops=fee_drops,
    )
