import argparse
import asyncio
import contextlib
import getpass
import logging
import os
import signal
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

from xrpl.constants import XRPLException
from xrpl.wallet import Wallet

from xrpl_payout.config import PayoutSettings, load_settings
from xrpl_payout.constants import OutcomeKind, XrplNetwork
from xrpl_payout.errors import ConfigurationError, PayoutError
from xrpl_payout.events import EventType, PayoutEvent, log_event
from xrpl_payout.ingest import read_recipients
from xrpl_payout.ledger import connect_to_ledger, generate_wallet
from xrpl_payout.logging_config import setup_logging
from xrpl_payout.models import BatchRun, RecipientInput
from xrpl_payout.orchestrator import BatchOrchestrator
from xrpl_payout.sinks import CsvResultSink, FanOutSink, SQLiteResultSink
from xrpl_payout.submitter import usd_to_xrp
from xrpl_payout.watcher import ConfirmationWatcher

log = logging.getLogger("xrpl_payout.cli")

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_FATAL = 2
EXIT_CANCELLED = 130

MARKERS = {
    OutcomeKind.CONFIRMED: "[ OK ]",
    OutcomeKind.FAILED: "[FAIL]",
    OutcomeKind.TIMED_OUT: "[WAIT]",
}


def _decimal(value: str) -> Decimal:
    try:
        d = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal: {value!r}")
    if not d.is_finite() or d <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive decimal: {value!r}")
    return d


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="xrpl-payout", description="Reliable batch XRP payouts from a CSV.")
    parser.add_argument("-i", "--input-csv", type=Path, required=True,
                        help="Recipients CSV (name,address,destination_tag,usd_amount).")
    parser.add_argument("-o", "--output-csv", type=Path, required=True,
                        help="Where to write one outcome line per recipient.")
    parser.add_argument("-r", "--usd-per-xrp", type=_decimal, required=True,
                        help="Exchange rate in USD per XRP.")
    parser.add_argument("-n", "--network", choices=[n.value for n in XrplNetwork],
                        help="XRPL network (default from config/PAYOUT_NETWORK).")
    parser.add_argument("--rpc-url", help="JSON-RPC endpoint; overrides the network default.")
    parser.add_argument("--retry-limit", type=int, help="Status polls before a pending payment times out.")
    parser.add_argument("--secret-env", default="XRPL_SECRET",
                        help="Environment variable holding the sender secret (prompted if unset).")
    parser.add_argument("--audit-db", help="SQLite audit database; empty string disables it.")
    parser.add_argument("--log-file", help="Also append logs to this file.")
    parser.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt.")
    return parser.parse_args(argv)


def _read_secret(env_name: str) -> str:
    secret = os.environ.get(env_name)
    if secret:
        return secret
    return getpass.getpass("XRPL secret: ")


def summarize(recipients: list[RecipientInput], usd_per_xrp: Decimal, settings: PayoutSettings, wallet: Wallet) -> str:
    total_usd = sum((r.usd_amount for r in recipients), Decimal(0))
    try:
        total_xrp = sum((usd_to_xrp(r.usd_amount, usd_per_xrp) for r in recipients), Decimal(0))
    except ValueError as e:
        raise ConfigurationError(f"Cannot price the batch: {e}") from e
    return "\n".join([
        f"Network:      {settings.network} ({settings.rpc_url})",
        f"Sender:       {wallet.classic_address}",
        f"Recipients:   {len(recipients)}",
        f"Total:        ${total_usd} = {total_xrp} XRP at {usd_per_xrp} USD/XRP",
    ])


def confirm(prompt: str = "Proceed with payout? [y/N] ") -> bool:
    try:
        return input(prompt).strip().lower() in {"y", "yes"}
    except EOFError:
        return False


def print_report(run: BatchRun) -> None:
    for rec in run.records:
        r = rec.recipient
        print(f"{MARKERS[rec.kind]} row {rec.row_index:>4}  {r.name:<24} {r.address:<35} {rec.outcome.detail}")
    counts = run.count_by_kind()
    print(f"confirmed={counts['CONFIRMED']} failed={counts['FAILED']} timed_out={counts['TIMED_OUT']}"
          + (" (cancelled)" if run.cancelled else ""))
    if counts["TIMED_OUT"]:
        print("Timed-out payments may still validate. Check them on the ledger before re-sending.")


def _install_cancel(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except NotImplementedError:
            pass  # Windows


async def run_payout(
    recipients: list[RecipientInput],
    wallet: Wallet,
    settings: PayoutSettings,
    usd_per_xrp: Decimal,
    output_csv: Path,
    cancel: asyncio.Event | None = None,
) -> BatchRun:
    session, balance = await connect_to_ledger(
        settings.rpc_url,
        settings.network,
        wallet.classic_address,
        probe_retries=settings.probe_retries,
        probe_delay=settings.probe_delay,
        rpc_timeout=settings.rpc_timeout,
        submit_timeout=settings.submit_timeout,
    )
    log_event(PayoutEvent(EventType.CONNECTED, {
        "network": settings.network.value,
        "url": settings.rpc_url,
        "address": wallet.classic_address,
        "balance_xrp": str(balance),
    }))

    if cancel is None:
        cancel = asyncio.Event()
        _install_cancel(cancel)

    with contextlib.ExitStack() as stack:
        sinks = [stack.enter_context(CsvResultSink(output_csv))]
        if settings.audit_db:
            audit = SQLiteResultSink(settings.audit_db)
            stack.callback(audit.close)
            sinks.append(audit)
        watcher = ConfirmationWatcher(session, retry_limit=settings.retry_limit, backoff=settings.backoff)
        orchestrator = BatchOrchestrator(
            session, wallet, FanOutSink(*sinks), usd_per_xrp=usd_per_xrp, watcher=watcher
        )
        return await orchestrator.run(recipients, cancel)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(log_file=args.log_file)

    try:
        settings = load_settings({
            "network": args.network,
            "rpc_url": args.rpc_url,
            "retry_limit": args.retry_limit,
            "audit_db": args.audit_db,
        })
        recipients = read_recipients(args.input_csv)
        wallet = generate_wallet(_read_secret(args.secret_env))
    except PayoutError as e:
        log.error("%s", e)
        return EXIT_FATAL

    if not recipients:
        log.warning("No recipients in %s; nothing to pay.", args.input_csv)
        return EXIT_OK

    try:
        summary = summarize(recipients, args.usd_per_xrp, settings, wallet)
    except ConfigurationError as e:
        log.error("%s", e)
        return EXIT_FATAL

    print(summary)
    if not args.yes and not confirm():
        log.error("XRP payout stopped.")
        return EXIT_CANCELLED

    try:
        run = asyncio.run(run_payout(recipients, wallet, settings, args.usd_per_xrp, args.output_csv))
    except (PayoutError, XRPLException) as e:
        log.error("Payout aborted: %s", e)
        return EXIT_FATAL

    print_report(run)
    if run.cancelled:
        return EXIT_CANCELLED
    return EXIT_OK if run.all_confirmed else EXIT_INCOMPLETE


if __name__ == "__main__":
    sys.exit(main())
