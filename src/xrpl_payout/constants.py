from decimal import Decimal
from enum import StrEnum
from typing import Final


class XrplNetwork(StrEnum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"

    @property
    def is_test_network(self) -> bool:
        return self is not XrplNetwork.MAINNET


class PaymentStatus(StrEnum):
    SUCCEEDED = "SUCCEEDED"
    PENDING   = "PENDING"
    FAILED    = "FAILED"
    UNKNOWN   = "UNKNOWN"


class OutcomeKind(StrEnum):
    CONFIRMED = "CONFIRMED"
    FAILED    = "FAILED"
    TIMED_OUT = "TIMED_OUT"


DROPS_PER_XRP: Final = Decimal(1_000_000)
XRP_PRECISION: Final = Decimal("0.000001")
MAX_DESTINATION_TAG: Final = 2**32 - 1

RETRY_LIMIT = 3
RPC_TIMEOUT = 2.0
SUBMIT_TIMEOUT = 20.0

__all__ = [
    "DROPS_PER_XRP",
    "MAX_DESTINATION_TAG",
    "RETRY_LIMIT",
    "RPC_TIMEOUT",
    "SUBMIT_TIMEOUT",
    "XRP_PRECISION",

    ######
    "OutcomeKind",
    "PaymentStatus",
    "XrplNetwork",
]
