"""Transaction submitter: USD amount to drops, destination encoding, one submit."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from xrpl.constants import XRPLException
from xrpl.core.addresscodec import classic_address_to_xaddress, is_valid_classic_address
from xrpl.wallet import Wallet

import xrpl_payout.constants as C
from xrpl_payout.errors import InvalidDestination, SubmissionError
from xrpl_payout.events import EventSink, EventType, PayoutEvent, log_event
from xrpl_payout.ledger import LedgerSession
from xrpl_payout.models import RecipientInput, SubmittedTransaction


def usd_to_xrp(usd_amount: Decimal, usd_per_xrp: Decimal) -> Decimal:
    """Native XRP amount for ``usd_amount`` at ``usd_per_xrp``, truncated to drop precision."""
    if usd_per_xrp <= 0:
        raise ValueError(f"Exchange rate must be positive, got {usd_per_xrp}")
    try:
        return (Decimal(usd_amount) / Decimal(usd_per_xrp)).quantize(C.XRP_PRECISION, rounding=ROUND_DOWN)
    except InvalidOperation as e:
        raise ValueError(f"Cannot convert ${usd_amount} at {usd_per_xrp} USD/XRP") from e


def usd_to_drops(usd_amount: Decimal, usd_per_xrp: Decimal) -> int:
    """Whole drops for ``usd_amount``; never rounds up."""
    return int(usd_to_xrp(usd_amount, usd_per_xrp) * C.DROPS_PER_XRP)


def encode_destination(address: str, tag: int | None, network: C.XrplNetwork) -> str:
    """Encode a classic address and optional tag as an X-address."""
    if tag is not None and not (0 <= tag <= C.MAX_DESTINATION_TAG):
        raise InvalidDestination(f"Destination tag {tag} out of range")
    if not is_valid_classic_address(address):
        raise InvalidDestination(f"Invalid classic address {address!r}")
    try:
        return classic_address_to_xaddress(address, tag, network.is_test_network)
    except XRPLException as e:
        raise InvalidDestination(e) from e


async def submit_payment(
    session: LedgerSession,
    wallet: Wallet,
    recipient: RecipientInput,
    usd_per_xrp: Decimal,
    *,
    emit: EventSink = log_event,
) -> SubmittedTransaction:
    """Submit one payment to ``recipient``. Exactly one submission attempt, no retry.

    Raises ``InvalidDestination`` before touching the network when the address
    cannot be encoded, and ``SubmissionError`` for any other failure.
    """
    destination = encode_destination(recipient.address, recipient.destination_tag, session.network)
    try:
        xrp_amount = usd_to_xrp(recipient.usd_amount, usd_per_xrp)
    except ValueError as e:
        raise SubmissionError(e) from e
    drops = int(xrp_amount * C.DROPS_PER_XRP)
    if drops <= 0:
        raise SubmissionError(f"${recipient.usd_amount} at {usd_per_xrp} USD/XRP is less than one drop")

    emit(PayoutEvent(EventType.SUBMISSION_ATTEMPTED, {
        "name": recipient.name,
        "address": recipient.address,
        "destination_tag": recipient.destination_tag,
        "xrp_amount": str(xrp_amount),
        "usd_amount": str(recipient.usd_amount),
        "drops": drops,
    }))
    try:
        tx_hash = await session.submit(drops, destination, wallet)
    except SubmissionError:
        raise
    except Exception as e:
        # Anything from the session is scoped to this recipient.
        raise SubmissionError(e) from e

    emit(PayoutEvent(EventType.SUBMITTED, {"name": recipient.name, "tx_hash": tx_hash, "drops": drops}))
    return SubmittedTransaction(tx_hash=tx_hash, recipient=recipient, amount_drops=drops)
