from typing import Final
from enum import StrEnum

# 1 XRP = 1,000,000 drops
DROPS_PER_XRP: Final = 1_000_000

# Ledger minimum fee, applied flat to every offer
BASE_FEE_DROPS: Final = 12

# IOU amounts carry at most 15 significant digits on the ledger
IOU_PRECISION: Final = 15

MIN_ORDERS: Final = 2
MIN_ORDER_SIZE: Final = 0.000001
MAX_BATCH_SIZE: Final = 8  # XLS-56 Batch inner transaction ceiling

STANDARD_CURRENCY_LENGTH: Final = 3
HEX_CURRENCY_LENGTH: Final = 40

# Reserves used for the pre-flight XRP estimate (in XRP)
BASE_RESERVE_XRP: Final = 10
OWNER_RESERVE_XRP: Final = 2

HORIZON = 20  # LastLedgerSequence offset; generous since a human has to scan each QR
RPC_TIMEOUT = 5.0
SIGN_TIMEOUT = 300.0  # 5 minute window per signature
POLL_INTERVAL = 5.0
INTER_SIGN_DELAY = 2.0
PAYLOAD_EXPIRE_MINUTES = 5


class TxType(StrEnum):
    OFFER_CREATE = "OfferCreate"


class Spread(StrEnum):
    LINEAR      = "linear"
    LOGARITHMIC = "logarithmic"
    FIBONACCI   = "fibonacci"


class RunState(StrEnum):
    IDLE      = "IDLE"
    RUNNING   = "RUNNING"
    COMPLETED = "COMPLETED"
    ABORTED   = "ABORTED"


__all__ = [
    "BASE_FEE_DROPS",
    "BASE_RESERVE_XRP",
    "DROPS_PER_XRP",
    "HEX_CURRENCY_LENGTH",
    "HORIZON",
    "INTER_SIGN_DELAY",
    "IOU_PRECISION",
    "MAX_BATCH_SIZE",
    "MIN_ORDERS",
    "MIN_ORDER_SIZE",
    "OWNER_RESERVE_XRP",
    "PAYLOAD_EXPIRE_MINUTES",
    "POLL_INTERVAL",
    "RPC_TIMEOUT",
    "SIGN_TIMEOUT",
    "STANDARD_CURRENCY_LENGTH",

    ######
    "RunState",
    "Spread",
    "TxType",
]
