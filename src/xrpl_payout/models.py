"""Payout data structures.

Recipients, submitted transactions and outcomes are immutable once created;
one outcome is produced per recipient and written to the result sink once.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from xrpl_payout.constants import OutcomeKind
from xrpl_payout.errors import PendingTimeout


@dataclass(frozen=True, slots=True)
class RecipientInput:
    address: str
    usd_amount: Decimal
    name: str
    destination_tag: int | None = None


@dataclass(frozen=True, slots=True)
class SubmittedTransaction:
    tx_hash: str
    recipient: RecipientInput
    amount_drops: int


@dataclass(frozen=True, slots=True)
class Confirmed:
    tx_hash: str
    kind: OutcomeKind = field(default=OutcomeKind.CONFIRMED, init=False)

    @property
    def detail(self) -> str:
        return self.tx_hash


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str
    tx_hash: str | None = None
    kind: OutcomeKind = field(default=OutcomeKind.FAILED, init=False)

    @property
    def detail(self) -> str:
        return self.reason


@dataclass(frozen=True, slots=True)
class TimedOut:
    tx_hash: str
    retries_exhausted: bool
    attempts: int = 0
    kind: OutcomeKind = field(default=OutcomeKind.TIMED_OUT, init=False)

    @property
    def detail(self) -> str:
        if self.retries_exhausted:
            return f"{PendingTimeout(self.tx_hash, self.attempts)} Re-check before re-sending."
        return "ledger unreachable while confirming; re-check before re-sending"


TransactionOutcome = Confirmed | Failed | TimedOut


@dataclass(frozen=True, slots=True)
class OutcomeRecord:
    """One audit row: the outcome for the recipient at ``row_index`` (1-based)."""

    row_index: int
    recipient: RecipientInput
    outcome: TransactionOutcome

    @property
    def kind(self) -> OutcomeKind:
        return self.outcome.kind

    @property
    def tx_hash(self) -> str | None:
        return self.outcome.tx_hash

    def as_row(self) -> dict:
        r = self.recipient
        return {
            "row": self.row_index,
            "name": r.name,
            "address": r.address,
            "destination_tag": "" if r.destination_tag is None else r.destination_tag,
            "usd_amount": str(r.usd_amount),
            "outcome": self.kind.value,
            "tx_hash": self.tx_hash or "",
            "detail": self.outcome.detail,
        }


@dataclass
class BatchRun:
    """Ordered outcomes of one batch invocation."""

    records: list[OutcomeRecord] = field(default_factory=list)
    cancelled: bool = False

    def __len__(self) -> int:
        return len(self.records)

    def count_by_kind(self) -> dict[str, int]:
        counts = {k.value: 0 for k in OutcomeKind}
        for rec in self.records:
            counts[rec.kind.value] += 1
        return counts

    @property
    def all_confirmed(self) -> bool:
        return not self.cancelled and all(r.kind is OutcomeKind.CONFIRMED for r in self.records)
