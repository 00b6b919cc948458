from collections import deque
from decimal import Decimal

import pytest
from xrpl.wallet import Wallet

from xrpl_payout.constants import PaymentStatus, XrplNetwork
from xrpl_payout.errors import SubmissionError
from xrpl_payout.models import RecipientInput

# Well-known valid classic addresses (genesis and a documentation account).
ADDR_A = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
ADDR_B = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"
ADDR_C = "rPEPPER7kfTD9w2To4CQk6UCfuHM9c6GDY"


class ScriptedSession:
    """LedgerSession double: submits hand out tx hashes, polls follow a script per hash."""

    def __init__(self, network: XrplNetwork = XrplNetwork.TESTNET):
        self.network = network
        self.submits: list[tuple[int, str]] = []
        self.polls: list[str] = []
        self.scripts: dict[str, deque] = {}
        self.fail_submits: dict[int, BaseException] = {}
        self.default_status = PaymentStatus.SUCCEEDED

    def script(self, tx_hash: str, *statuses) -> None:
        self.scripts[tx_hash] = deque(statuses)

    async def get_balance(self, address: str) -> Decimal:
        return Decimal("1000")

    async def submit(self, amount_drops: int, destination: str, wallet) -> str:
        n = len(self.submits) + 1
        self.submits.append((amount_drops, destination))
        if n in self.fail_submits:
            raise self.fail_submits[n]
        return f"TX{n}"

    async def query_status(self, tx_hash: str) -> PaymentStatus:
        self.polls.append(tx_hash)
        script = self.scripts.get(tx_hash)
        if script:
            status = script.popleft() if len(script) > 1 else script[0]
        else:
            status = self.default_status
        if isinstance(status, BaseException):
            raise status
        return status


async def no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def session():
    return ScriptedSession()


@pytest.fixture
def wallet():
    return Wallet.create()


@pytest.fixture
def recipients():
    return [
        RecipientInput(address=ADDR_A, usd_amount=Decimal("10.00"), name="Alice"),
        RecipientInput(address=ADDR_B, usd_amount=Decimal("5.50"), name="Bob", destination_tag=12345),
        RecipientInput(address=ADDR_C, usd_amount=Decimal("1"), name="Carol"),
    ]


@pytest.fixture
def submission_error():
    return SubmissionError("tefPAST_SEQ")
