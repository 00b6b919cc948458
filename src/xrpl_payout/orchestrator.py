"""Batch orchestrator: pay each recipient in input order, one outcome per recipient."""

import asyncio
from decimal import Decimal
from typing import Iterable

from xrpl.wallet import Wallet

from xrpl_payout.errors import SubmissionError
from xrpl_payout.events import EventSink, EventType, PayoutEvent, log_event
from xrpl_payout.ledger import LedgerSession
from xrpl_payout.models import (
    BatchRun,
    Failed,
    OutcomeRecord,
    RecipientInput,
    SubmittedTransaction,
    TimedOut,
    TransactionOutcome,
)
from xrpl_payout.sinks import ResultSink
from xrpl_payout.submitter import submit_payment
from xrpl_payout.watcher import ConfirmationWatcher


class BatchOrchestrator:
    """Sequential submit-then-confirm over a recipient list.

    The session and wallet are shared across recipients and never mutated here.
    A failed or timed-out recipient never stops the batch. An exception while
    confirming (``LedgerUnavailable`` or anything else) stops it, after that
    recipient has been recorded as timed out.
    """

    def __init__(
        self,
        session: LedgerSession,
        wallet: Wallet,
        sink: ResultSink,
        *,
        usd_per_xrp: Decimal,
        watcher: ConfirmationWatcher | None = None,
        emit: EventSink = log_event,
    ):
        if usd_per_xrp <= 0:
            raise ValueError(f"Exchange rate must be positive, got {usd_per_xrp}")
        self.session = session
        self.wallet = wallet
        self.sink = sink
        self.usd_per_xrp = Decimal(usd_per_xrp)
        self.watcher = watcher or ConfirmationWatcher(session, emit=emit)
        self._emit = emit

    async def _submit(self, recipient: RecipientInput) -> SubmittedTransaction | Failed:
        try:
            submitted = await submit_payment(
                self.session, self.wallet, recipient, self.usd_per_xrp, emit=self._emit
            )
        except SubmissionError as e:
            self._emit(PayoutEvent(EventType.SUBMISSION_FAILED, {"name": recipient.name, "reason": str(e)}))
            return Failed(reason=str(e))
        return submitted

    def _record(self, run: BatchRun, row: int, recipient: RecipientInput, outcome: TransactionOutcome) -> None:
        rec = OutcomeRecord(row_index=row, recipient=recipient, outcome=outcome)
        self.sink.write(rec)
        run.records.append(rec)
        self._emit(PayoutEvent(EventType.OUTCOME, {
            "row": row,
            "name": recipient.name,
            "address": recipient.address,
            "outcome": outcome.kind.value,
            "tx_hash": outcome.tx_hash,
            "detail": outcome.detail,
        }))

    async def run(
        self,
        recipients: Iterable[RecipientInput],
        cancel: asyncio.Event | None = None,
    ) -> BatchRun:
        """Pay ``recipients`` in order. Rows are numbered from 1.

        ``cancel`` is checked before each submission; a recipient already
        submitted is always confirmed or timed out before the run stops.
        """
        run = BatchRun()
        for row, recipient in enumerate(recipients, start=1):
            if cancel is not None and cancel.is_set():
                run.cancelled = True
                self._emit(PayoutEvent(EventType.BATCH_CANCELLED, {"next_row": row, "recorded": len(run)}))
                break

            submitted = await self._submit(recipient)
            if isinstance(submitted, Failed):
                self._record(run, row, recipient, submitted)
                continue

            try:
                outcome = await self.watcher.watch(submitted)
            except BaseException:
                # Submitted but unconfirmed: record it before the run stops.
                self._record(run, row, recipient, TimedOut(tx_hash=submitted.tx_hash, retries_exhausted=False))
                raise

            self._record(run, row, recipient, outcome)

        self._emit(PayoutEvent(EventType.BATCH_FINISHED, {"counts": run.count_by_kind(), "cancelled": run.cancelled}))
        return run
