"""Ladders of XRPL sell offers across a market-cap range, signed one at a time."""

from offer_ladder.builder import BuildError, build, build_offers, normalize_currency_code
from offer_ladder.distribution import calculate, summarize
from offer_ladder.models import (
    BatchResult,
    DistributionRequest,
    Failed,
    OrderSpec,
    Rejected,
    Signed,
    SigningOutcome,
    TransactionDescriptor,
)
from offer_ladder.signing import FakeSigner, SigningCoordinator, run_signing_batch
from offer_ladder.validation import ValidationError, validate

__all__ = [
    "BatchResult",
    "BuildError",
    "DistributionRequest",
    "Failed",
    "FakeSigner",
    "OrderSpec",
    "Rejected",
    "Signed",
    "SigningCoordinator",
    "SigningOutcome",
    "TransactionDescriptor",
    "ValidationError",
    "build",
    "build_offers",
    "calculate",
    "normalize_currency_code",
    "run_signing_batch",
    "summarize",
    "validate",
]
