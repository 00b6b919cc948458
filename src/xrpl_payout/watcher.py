"""Confirmation watcher: poll a submitted transaction until it reaches a terminal outcome.

States: POLLING -> CONFIRMED | FAILED | TIMED_OUT. Each PENDING poll increments
the attempt counter; once it reaches ``retry_limit`` the transaction is reported
as timed out rather than failed, since it may still validate later.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import xrpl_payout.constants as C
from xrpl_payout.errors import LedgerRejected
from xrpl_payout.events import EventSink, EventType, PayoutEvent, log_event
from xrpl_payout.ledger import LedgerSession
from xrpl_payout.models import Confirmed, Failed, SubmittedTransaction, TimedOut, TransactionOutcome


@dataclass(frozen=True)
class Backoff:
    """Capped exponential delay between polls. Never decreases."""

    base_delay: float = 1.0
    factor: float = 2.0
    max_delay: float = 8.0

    def __post_init__(self):
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if self.factor < 1:
            raise ValueError("factor must be >= 1")

    def delay(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        return min(self.max_delay, self.base_delay * self.factor ** (attempt - 1))


class ConfirmationWatcher:
    def __init__(
        self,
        session: LedgerSession,
        *,
        retry_limit: int = C.RETRY_LIMIT,
        backoff: Backoff | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        emit: EventSink = log_event,
    ):
        if retry_limit < 0:
            raise ValueError(f"retry_limit must be >= 0, got {retry_limit}")
        self.session = session
        self.retry_limit = retry_limit
        self.backoff = backoff or Backoff()
        self._sleep = sleep
        self._emit = emit

    async def watch(self, tx: SubmittedTransaction) -> TransactionOutcome:
        """Resolve ``tx`` to Confirmed, Failed or TimedOut.

        ``LedgerUnavailable`` from the session propagates; the caller decides
        what that means for the rest of the batch.
        """
        attempts = 0
        while True:
            status = await self.session.query_status(tx.tx_hash)
            self._emit(PayoutEvent(EventType.POLL_RESULT, {
                "tx_hash": tx.tx_hash,
                "attempt": attempts + 1,
                "retry_limit": self.retry_limit,
                "status": status.value,
            }))

            if status is C.PaymentStatus.SUCCEEDED:
                return Confirmed(tx_hash=tx.tx_hash)
            if status in (C.PaymentStatus.FAILED, C.PaymentStatus.UNKNOWN):
                return Failed(reason=str(LedgerRejected(tx.tx_hash, status.value)), tx_hash=tx.tx_hash)

            attempts += 1
            if attempts >= self.retry_limit:
                return TimedOut(
                    tx_hash=tx.tx_hash,
                    retries_exhausted=True,
                    attempts=attempts,
                )
            await self._sleep(self.backoff.delay(attempts))
