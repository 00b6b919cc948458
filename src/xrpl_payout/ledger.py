"""Narrow ledger interface used by the payout core, and its xrpl-py adapter."""

import asyncio
import logging
from decimal import Decimal
from typing import Protocol

import httpx
from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.asyncio.ledger import get_latest_validated_ledger_sequence
from xrpl.asyncio.transaction import sign_and_submit
from xrpl.constants import XRPLException
from xrpl.core.addresscodec import (
    is_valid_classic_address,
    xaddress_to_classic_address,
)
from xrpl.models.requests import AccountInfo, Tx
from xrpl.models.transactions import Payment
from xrpl.utils import drops_to_xrp
from xrpl.wallet import Wallet

import xrpl_payout.constants as C
from xrpl_payout.errors import (
    LedgerConnectionError,
    LedgerUnavailable,
    SubmissionError,
    WalletError,
)

log = logging.getLogger("xrpl_payout.ledger")

TRANSPORT_ERRORS = (httpx.HTTPError, OSError, asyncio.TimeoutError)

# RPC errors from a reachable but overloaded or unsynced server.
TRANSIENT_RPC_ERRORS = frozenset({"slowDown", "tooBusy", "noNetwork", "noCurrent", "noClosed"})

# Engine results that guarantee the transaction was not applied and never will be.
NOT_APPLIED_PREFIXES = ("tem", "tef")


class LedgerSession(Protocol):
    network: C.XrplNetwork

    async def get_balance(self, address: str) -> Decimal: ...
    async def submit(self, amount_drops: int, destination: str, wallet: Wallet) -> str: ...
    async def query_status(self, tx_hash: str) -> C.PaymentStatus: ...


class XrplLedgerSession:
    """Adapts an xrpl-py JSON-RPC client to ``LedgerSession``.

    ``destination`` for ``submit`` is an X-address; it is decoded back into a
    classic address and destination tag for the Payment.
    """

    def __init__(
        self,
        client: AsyncJsonRpcClient,
        network: C.XrplNetwork,
        *,
        rpc_timeout: float = C.RPC_TIMEOUT,
        submit_timeout: float = C.SUBMIT_TIMEOUT,
    ):
        self.client = client
        self.network = network
        self.rpc_timeout = rpc_timeout
        self.submit_timeout = submit_timeout

    async def _rpc(self, req, *, t: float | None = None):
        return await asyncio.wait_for(self.client.request(req), timeout=t or self.rpc_timeout)

    async def get_balance(self, address: str) -> Decimal:
        """Sender balance in XRP from the latest validated ledger."""
        resp = await self._rpc(AccountInfo(account=address, ledger_index="validated"))
        if not resp.is_successful():
            err = resp.result.get("error_message") or resp.result.get("error")
            raise LedgerConnectionError(f"Cannot read account {address}: {err}")
        return drops_to_xrp(resp.result["account_data"]["Balance"])

    async def submit(self, amount_drops: int, destination: str, wallet: Wallet) -> str:
        if amount_drops <= 0:
            raise SubmissionError(f"Amount must be a positive number of drops, got {amount_drops}")
        try:
            classic, tag, _ = xaddress_to_classic_address(destination)
        except (XRPLException, ValueError) as e:
            raise SubmissionError(e) from e

        payment = Payment(
            account=wallet.classic_address,
            amount=str(amount_drops),
            destination=classic,
            destination_tag=tag,
        )
        try:
            resp = await asyncio.wait_for(
                sign_and_submit(payment, self.client, wallet),
                timeout=self.submit_timeout,
            )
        except (*TRANSPORT_ERRORS, XRPLException) as e:
            raise SubmissionError(e) from e

        res = resp.result
        if not resp.is_successful():
            raise SubmissionError(res.get("error_message") or res.get("error") or "submit failed")

        er = res.get("engine_result")
        if isinstance(er, str) and er.startswith(NOT_APPLIED_PREFIXES):
            raise SubmissionError(f"{er}: {res.get('engine_result_message', '')}".rstrip(": "))

        tx_hash = res.get("tx_json", {}).get("hash")
        if not tx_hash:
            raise SubmissionError(f"Submit response carried no transaction hash (engine_result={er})")
        # tel*/ter* are not final; the transaction may still apply before LastLedgerSequence.
        if isinstance(er, str) and er != "tesSUCCESS":
            log.debug("Provisional engine result %s for %s", er, tx_hash)
        return tx_hash

    async def query_status(self, tx_hash: str) -> C.PaymentStatus:
        try:
            resp = await self._rpc(Tx(transaction=tx_hash))
        except (*TRANSPORT_ERRORS, XRPLException) as e:
            raise LedgerUnavailable(tx_hash, e) from e

        result = resp.result
        if not resp.is_successful():
            if result.get("error") == "txnNotFound":
                return C.PaymentStatus.UNKNOWN
            if result.get("error") in TRANSIENT_RPC_ERRORS:
                log.debug("Transient RPC error %s while checking %s", result.get("error"), tx_hash)
                return C.PaymentStatus.PENDING
            raise LedgerUnavailable(tx_hash, RuntimeError(result.get("error_message") or result.get("error")))

        if result.get("validated"):
            meta = result.get("meta") or {}
            if meta.get("TransactionResult") == "tesSUCCESS":
                return C.PaymentStatus.SUCCEEDED
            return C.PaymentStatus.FAILED

        # API v2 nests the transaction fields under tx_json
        lls = result.get("tx_json", result).get("LastLedgerSequence")
        if lls is not None:
            try:
                latest = await get_latest_validated_ledger_sequence(self.client)
            except (*TRANSPORT_ERRORS, XRPLException) as e:
                raise LedgerUnavailable(tx_hash, e) from e
            if latest > int(lls):
                return C.PaymentStatus.FAILED
        return C.PaymentStatus.PENDING


async def probe_rippled(url: str, *, max_retries: int = 3, retry_delay: float = 1.0, timeout: float = 3.0) -> None:
    """POST ``server_info`` to the RPC endpoint until it answers."""
    payload = {"method": "server_info", "params": [{}]}
    for attempt in range(1, max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout) as http:
                r = await http.post(url, json=payload)
                r.raise_for_status()
                log.debug("RPC endpoint responding (attempt %s/%s)", attempt, max_retries)
                return
        except httpx.HTTPError as e:
            if attempt < max_retries:
                log.info(
                    "RPC not ready yet (attempt %s/%s): %s - retrying in %ss...",
                    attempt, max_retries, e.__class__.__name__, retry_delay,
                )
                await asyncio.sleep(retry_delay)
            else:
                raise LedgerConnectionError(f"{url} unreachable after {max_retries} attempts: {e}") from e


async def connect_to_ledger(
    url: str,
    network: C.XrplNetwork,
    classic_address: str,
    *,
    probe_retries: int = 3,
    probe_delay: float = 1.0,
    rpc_timeout: float = C.RPC_TIMEOUT,
    submit_timeout: float = C.SUBMIT_TIMEOUT,
) -> tuple[XrplLedgerSession, Decimal]:
    """Connect to the XRPL and confirm the sender account is readable.

    Returns the session and the sender balance in XRP.
    Raises ``LedgerConnectionError`` if the endpoint is unreachable or the address is invalid.
    """
    if not is_valid_classic_address(classic_address):
        raise LedgerConnectionError(f"Invalid sender address: {classic_address!r}")

    log.info("Connecting to the XRPL %s..", network)
    await probe_rippled(url, max_retries=probe_retries, retry_delay=probe_delay)

    session = XrplLedgerSession(
        AsyncJsonRpcClient(url), network, rpc_timeout=rpc_timeout, submit_timeout=submit_timeout
    )
    try:
        balance = await session.get_balance(classic_address)
    except (*TRANSPORT_ERRORS, XRPLException) as e:
        raise LedgerConnectionError(f"Balance query against {url} failed: {e}") from e
    return session, balance


def generate_wallet(secret: str) -> Wallet:
    """Derive the sender wallet from an XRPL secret."""
    log.info("Generating wallet from secret..")
    try:
        wallet = Wallet.from_seed(secret)
    except (XRPLException, ValueError) as e:
        raise WalletError("Failed to generate wallet from secret.") from e
    if not is_valid_classic_address(wallet.classic_address):
        raise WalletError("Failed to generate wallet from secret.")
    log.info("Generated wallet from secret.")
    log.info("  -> Sender XRPL classic address: %s", wallet.classic_address)
    return wallet
