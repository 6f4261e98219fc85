"""Ladder and signing data structures.

Amounts on OrderSpec are in token units and XRP; anything headed for the
ledger (TransactionDescriptor) is already in ledger units: drops for XRP and a
decimal string for the issued token.
"""

import math
from dataclasses import dataclass, field
from typing import Any

from xrpl.models.transactions import OfferCreate

from offer_ladder.constants import Spread, TxType


@dataclass(slots=True)
class DistributionRequest:
    bottom_market_cap: float
    top_market_cap: float
    order_count: int
    total_tokens: float
    token_supply: float
    use_logarithmic: bool = False
    spread: Spread | None = None
    available_balance: float | None = None  # only set when the caller holds the token

    @property
    def effective_spread(self) -> Spread:
        if self.spread is not None:
            return Spread(self.spread)
        return Spread.LOGARITHMIC if self.use_logarithmic else Spread.LINEAR

    @property
    def tokens_per_order(self) -> float:
        return self.total_tokens / self.order_count

    @property
    def price_range(self) -> tuple[float, float]:
        return self.bottom_market_cap / self.token_supply, self.top_market_cap / self.token_supply


@dataclass(frozen=True, slots=True)
class OrderSpec:
    index: int
    price: float
    amount: float
    market_cap: float

    @property
    def total_xrp(self) -> float:
        return self.amount * self.price


@dataclass(frozen=True, slots=True)
class OrderSummary:
    order_count: int
    total_tokens: float
    total_xrp: float
    average_price: float
    min_price: float
    max_price: float
    total_fee_drops: int
    required_reserve_xrp: float


@dataclass(frozen=True, slots=True)
class TokenAmount:
    currency: str
    issuer: str
    value: str

    def to_xrpl(self) -> dict[str, str]:
        return {"currency": self.currency, "issuer": self.issuer, "value": self.value}


@dataclass(frozen=True, slots=True)
class TransactionDescriptor:
    """One sell offer: the account gives `taker_gets` tokens and asks for `taker_pays_drops`."""

    account: str
    taker_gets: TokenAmount
    taker_pays_drops: int
    fee_drops: int
    flags: int = 0
    sequence: int | None = None
    last_ledger_sequence: int | None = None
    transaction_type: TxType = TxType.OFFER_CREATE

    def to_xrpl(self) -> dict[str, Any]:
        tx: dict[str, Any] = {
            "TransactionType": str(self.transaction_type),
            "Account": self.account,
            "TakerGets": self.taker_gets.to_xrpl(),
            "TakerPays": str(self.taker_pays_drops),
            "Fee": str(self.fee_drops),
            "Flags": self.flags,
        }
        if self.sequence is not None:
            tx["Sequence"] = self.sequence
        if self.last_ledger_sequence is not None:
            tx["LastLedgerSequence"] = self.last_ledger_sequence
        return tx

    def to_transaction(self) -> OfferCreate:
        """Parse into an xrpl-py model. Raises if xrpl-py rejects any field."""
        return OfferCreate.from_xrpl(self.to_xrpl())


class SigningOutcome:
    signed = False
    kind = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class Signed(SigningOutcome):
    tx_hash: str | None = None
    signed = True
    kind = "SIGNED"


@dataclass(frozen=True, slots=True)
class Rejected(SigningOutcome):
    kind = "REJECTED"


@dataclass(frozen=True, slots=True)
class Failed(SigningOutcome):
    reason: str = "unknown"
    kind = "FAILED"


@dataclass(frozen=True, slots=True)
class BatchResult:
    requested: int
    signed_count: int
    outcomes: tuple[SigningOutcome, ...] = field(default_factory=tuple)
    aborted: bool = False

    @classmethod
    def from_outcomes(cls, requested: int, outcomes: list[SigningOutcome], *, aborted: bool) -> "BatchResult":
        return cls(
            requested=requested,
            signed_count=sum(1 for o in outcomes if o.signed),
            outcomes=tuple(outcomes),
            aborted=aborted,
        )

    @property
    def unsigned_count(self) -> int:
        return len(self.outcomes) - self.signed_count

    @property
    def skipped_count(self) -> int:
        """Descriptors never handed to the signer because the run stopped early."""
        return self.requested - len(self.outcomes)

    def snapshot(self) -> dict[str, Any]:
        return {
            "requested": self.requested,
            "signed": self.signed_count,
            "unsigned": self.unsigned_count,
            "skipped": self.skipped_count,
            "aborted": self.aborted,
            "outcomes": [_outcome_dict(o) for o in self.outcomes],
        }


def _outcome_dict(o: SigningOutcome) -> dict[str, Any]:
    d: dict[str, Any] = {"kind": o.kind}
    if isinstance(o, Signed):
        d["tx_hash"] = o.tx_hash
    elif isinstance(o, Failed):
        d["reason"] = o.reason
    return d


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))
