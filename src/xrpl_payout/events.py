"""Structured events emitted by the submitter, watcher and orchestrator.

Components never log directly; they hand ``PayoutEvent``s to an ``EventSink``.
The default sink forwards them to the ``xrpl_payout.events`` logger.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable

log = logging.getLogger("xrpl_payout.events")


class EventType(StrEnum):
    CONNECTED            = "connected"
    SUBMISSION_ATTEMPTED = "submission_attempted"
    SUBMITTED            = "submitted"
    SUBMISSION_FAILED    = "submission_failed"
    POLL_RESULT          = "poll_result"
    OUTCOME              = "outcome"
    BATCH_CANCELLED      = "batch_cancelled"
    BATCH_FINISHED       = "batch_finished"


@dataclass(frozen=True, slots=True)
class PayoutEvent:
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    at: float = field(default_factory=time.time)


EventSink = Callable[[PayoutEvent], None]

_WARN_OUTCOMES = {"FAILED", "TIMED_OUT"}


def log_event(event: PayoutEvent) -> None:
    """Default sink: one log line per event."""
    d = event.data
    match event.type:
        case EventType.CONNECTED:
            log.info("Connected to the XRPL %s at %s", d.get("network"), d.get("url"))
            log.info("  -> Sender address (%s) balance: %s XRP", d.get("address"), d.get("balance_xrp"))
        case EventType.SUBMISSION_ATTEMPTED:
            log.info("Submitting payment transaction..")
            log.info("  -> Name: %s", d.get("name"))
            log.info("  -> Classic address: %s", d.get("address"))
            log.info("  -> Destination tag: %s", d.get("destination_tag"))
            log.info("  -> Amount: %s XRP valued at $%s", d.get("xrp_amount"), d.get("usd_amount"))
        case EventType.SUBMITTED:
            log.info("Submitted payment transaction. Tx hash: %s", d.get("tx_hash"))
        case EventType.SUBMISSION_FAILED:
            log.warning("Submission failed for %s: %s", d.get("name"), d.get("reason"))
        case EventType.POLL_RESULT:
            log.info(
                "Checking that tx has been validated.. (%s/%s) %s -> %s",
                d.get("attempt"), d.get("retry_limit"), d.get("tx_hash"), d.get("status"),
            )
        case EventType.OUTCOME:
            level = logging.WARNING if d.get("outcome") in _WARN_OUTCOMES else logging.INFO
            log.log(level, "Row %s (%s): %s %s", d.get("row"), d.get("name"), d.get("outcome"), d.get("detail"))
        case EventType.BATCH_CANCELLED:
            log.warning("Batch cancelled before row %s; %s outcomes recorded", d.get("next_row"), d.get("recorded"))
        case EventType.BATCH_FINISHED:
            log.info("Batch finished: %s", d.get("counts"))
        case _:
            log.debug("%s %s", event.type, d)


def collect_into(events: list[PayoutEvent]) -> EventSink:
    """Sink that appends events to ``events``."""
    return events.append
