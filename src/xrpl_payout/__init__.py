"""Reliable batch XRP payouts."""

from xrpl_payout.models import (
    BatchRun,
    Confirmed,
    Failed,
    OutcomeRecord,
    RecipientInput,
    SubmittedTransaction,
    TimedOut,
    TransactionOutcome,
)
from xrpl_payout.orchestrator import BatchOrchestrator
from xrpl_payout.submitter import submit_payment, usd_to_drops
from xrpl_payout.watcher import Backoff, ConfirmationWatcher

__all__ = [
    "Backoff",
    "BatchOrchestrator",
    "BatchRun",
    "ConfirmationWatcher",
    "Confirmed",
    "Failed",
    "OutcomeRecord",
    "RecipientInput",
    "SubmittedTransaction",
    "TimedOut",
    "TransactionOutcome",
    "submit_payment",
    "usd_to_drops",
]
