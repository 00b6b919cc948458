"""
Tests for the xrpl-py ledger adapter. The JSON-RPC client is mocked; no network access.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from xrpl.asyncio.clients.exceptions import XRPLRequestFailureException
from xrpl.models.requests import Tx
from xrpl.models.response import Response, ResponseStatus
from xrpl.wallet import Wallet

import xrpl_payout.ledger as ledger
from conftest import ADDR_A, ADDR_B
from xrpl_payout.constants import PaymentStatus, XrplNetwork
from xrpl_payout.errors import LedgerConnectionError, LedgerUnavailable, SubmissionError, WalletError
from xrpl_payout.ledger import XrplLedgerSession, connect_to_ledger, generate_wallet
from xrpl_payout.submitter import encode_destination


def ok(result: dict) -> Response:
    return Response(status=ResponseStatus.SUCCESS, result=result)


def err(result: dict) -> Response:
    return Response(status=ResponseStatus.ERROR, result=result)


@pytest.fixture
def client():
    c = Mock()
    c.request = AsyncMock()
    return c


@pytest.fixture
def xrpl_session(client):
    return XrplLedgerSession(client, XrplNetwork.TESTNET)


class TestQueryStatus:

    @pytest.mark.asyncio
    async def test_validated_success(self, xrpl_session, client):
        client.request.return_value = ok({"validated": True, "meta": {"TransactionResult": "tesSUCCESS"}})
        assert await xrpl_session.query_status("H") is PaymentStatus.SUCCEEDED
        req = client.request.await_args.args[0]
        assert isinstance(req, Tx)
        assert req.transaction == "H"

    @pytest.mark.asyncio
    async def test_validated_with_failure_code(self, xrpl_session, client):
        client.request.return_value = ok({"validated": True, "meta": {"TransactionResult": "tecNO_DST_INSUF_XRP"}})
        assert await xrpl_session.query_status("H") is PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_not_found_is_unknown(self, xrpl_session, client):
        client.request.return_value = err({"error": "txnNotFound"})
        assert await xrpl_session.query_status("H") is PaymentStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_pending_within_window(self, xrpl_session, client, monkeypatch):
        client.request.return_value = ok({"validated": False, "tx_json": {"LastLedgerSequence": 120}})
        monkeypatch.setattr(ledger, "get_latest_validated_ledger_sequence", AsyncMock(return_value=110))
        assert await xrpl_session.query_status("H") is PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_expired_is_failed(self, xrpl_session, client, monkeypatch):
        client.request.return_value = ok({"validated": False, "LastLedgerSequence": 120})
        monkeypatch.setattr(ledger, "get_latest_validated_ledger_sequence", AsyncMock(return_value=121))
        assert await xrpl_session.query_status("H") is PaymentStatus.FAILED

    @pytest.mark.asyncio
    async def test_idempotent(self, xrpl_session, client):
        client.request.return_value = ok({"validated": True, "meta": {"TransactionResult": "tesSUCCESS"}})
        results = {await xrpl_session.query_status("H") for _ in range(5)}
        assert results == {PaymentStatus.SUCCEEDED}

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self, xrpl_session, client):
        client.request.side_effect = httpx.ConnectError("refused")
        with pytest.raises(LedgerUnavailable) as ei:
            await xrpl_session.query_status("H")
        assert ei.value.tx_hash == "H"

    @pytest.mark.asyncio
    async def test_request_failure_is_unavailable(self, xrpl_session, client):
        client.request.side_effect = XRPLRequestFailureException({"error": "noPermission", "error_message": "denied"})
        with pytest.raises(LedgerUnavailable) as ei:
            await xrpl_session.query_status("H")
        assert ei.value.tx_hash == "H"

    @pytest.mark.asyncio
    async def test_latest_ledger_failure_is_unavailable(self, xrpl_session, client, monkeypatch):
        client.request.return_value = ok({"validated": False, "LastLedgerSequence": 120})
        monkeypatch.setattr(
            ledger, "get_latest_validated_ledger_sequence",
            AsyncMock(side_effect=XRPLRequestFailureException({"error": "lgrNotFound"})),
        )
        with pytest.raises(LedgerUnavailable):
            await xrpl_session.query_status("H")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["slowDown", "tooBusy", "noNetwork", "noCurrent", "noClosed"])
    async def test_overloaded_server_is_pending(self, xrpl_session, client, code):
        client.request.return_value = err({"error": code})
        assert await xrpl_session.query_status("H") is PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_other_rpc_error_is_unavailable(self, xrpl_session, client):
        client.request.return_value = err({"error": "internal", "error_message": "Internal error."})
        with pytest.raises(LedgerUnavailable):
            await xrpl_session.query_status("H")


class TestSubmit:

    @pytest.fixture
    def wallet(self):
        return Wallet.create()

    @pytest.mark.asyncio
    async def test_builds_payment_from_xaddress(self, xrpl_session, wallet, monkeypatch):
        sas = AsyncMock(return_value=ok({"engine_result": "tesSUCCESS", "tx_json": {"hash": "ABC"}}))
        monkeypatch.setattr(ledger, "sign_and_submit", sas)
        dest = encode_destination(ADDR_B, 77, XrplNetwork.TESTNET)

        assert await xrpl_session.submit(1_500_000, dest, wallet) == "ABC"

        payment, _client, signer = sas.await_args.args
        assert payment.destination == ADDR_B
        assert payment.destination_tag == 77
        assert payment.amount == "1500000"
        assert payment.account == wallet.classic_address
        assert signer is wallet

    @pytest.mark.asyncio
    async def test_queued_result_still_returns_hash(self, xrpl_session, wallet, monkeypatch):
        sas = AsyncMock(return_value=ok({"engine_result": "terQUEUED", "tx_json": {"hash": "Q"}}))
        monkeypatch.setattr(ledger, "sign_and_submit", sas)
        dest = encode_destination(ADDR_A, None, XrplNetwork.TESTNET)
        assert await xrpl_session.submit(10, dest, wallet) == "Q"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("er", ["temBAD_AMOUNT", "tefPAST_SEQ"])
    async def test_not_applied_results_raise(self, xrpl_session, wallet, monkeypatch, er):
        sas = AsyncMock(return_value=ok({"engine_result": er, "tx_json": {"hash": "X"}}))
        monkeypatch.setattr(ledger, "sign_and_submit", sas)
        dest = encode_destination(ADDR_A, None, XrplNetwork.TESTNET)
        with pytest.raises(SubmissionError, match=er):
            await xrpl_session.submit(10, dest, wallet)

    @pytest.mark.asyncio
    async def test_transport_error_raises_submission_error(self, xrpl_session, wallet, monkeypatch):
        monkeypatch.setattr(ledger, "sign_and_submit", AsyncMock(side_effect=httpx.ReadTimeout("slow")))
        dest = encode_destination(ADDR_A, None, XrplNetwork.TESTNET)
        with pytest.raises(SubmissionError):
            await xrpl_session.submit(10, dest, wallet)

    @pytest.mark.asyncio
    async def test_bad_destination(self, xrpl_session, wallet):
        with pytest.raises(SubmissionError):
            await xrpl_session.submit(10, "not-an-xaddress", wallet)

    @pytest.mark.asyncio
    async def test_classic_address_is_not_an_xaddress(self, xrpl_session, wallet, monkeypatch):
        sas = AsyncMock()
        monkeypatch.setattr(ledger, "sign_and_submit", sas)
        with pytest.raises(SubmissionError):
            await xrpl_session.submit(10, ADDR_A, wallet)
        sas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, xrpl_session, wallet):
        dest = encode_destination(ADDR_A, None, XrplNetwork.TESTNET)
        with pytest.raises(SubmissionError):
            await xrpl_session.submit(0, dest, wallet)


class TestConnect:

    @pytest.mark.asyncio
    async def test_invalid_sender_address(self):
        with pytest.raises(LedgerConnectionError):
            await connect_to_ledger("http://localhost:5005", XrplNetwork.TESTNET, "nope")

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self, monkeypatch):
        monkeypatch.setattr(ledger, "probe_rippled", AsyncMock(side_effect=LedgerConnectionError("down")))
        with pytest.raises(LedgerConnectionError):
            await connect_to_ledger("http://localhost:5005", XrplNetwork.TESTNET, ADDR_A)

    @pytest.mark.asyncio
    async def test_returns_session_and_balance(self, monkeypatch):
        monkeypatch.setattr(ledger, "probe_rippled", AsyncMock())
        monkeypatch.setattr(
            XrplLedgerSession, "get_balance", AsyncMock(return_value=Decimal("1000"))
        )
        session, balance = await connect_to_ledger("http://localhost:5005", XrplNetwork.DEVNET, ADDR_A)
        assert balance == Decimal("1000")
        assert session.network is XrplNetwork.DEVNET

    @pytest.mark.asyncio
    async def test_balance_request_failure(self, monkeypatch):
        monkeypatch.setattr(ledger, "probe_rippled", AsyncMock())
        monkeypatch.setattr(
            XrplLedgerSession, "get_balance",
            AsyncMock(side_effect=XRPLRequestFailureException({"error": "noNetwork"})),
        )
        with pytest.raises(LedgerConnectionError, match="Balance query"):
            await connect_to_ledger("http://localhost:5005", XrplNetwork.TESTNET, ADDR_A)

    @pytest.mark.asyncio
    async def test_unfunded_sender(self, client):
        client.request.return_value = err({"error": "actNotFound", "error_message": "Account not found."})
        s = XrplLedgerSession(client, XrplNetwork.TESTNET)
        with pytest.raises(LedgerConnectionError, match="Account not found"):
            await s.get_balance(ADDR_A)

    @pytest.mark.asyncio
    async def test_balance_in_xrp(self, client):
        client.request.return_value = ok({"account_data": {"Balance": "1000000000"}})
        s = XrplLedgerSession(client, XrplNetwork.TESTNET)
        assert await s.get_balance(ADDR_A) == Decimal("1000")


class TestGenerateWallet:

    def test_from_seed(self):
        w = Wallet.create()
        assert generate_wallet(w.seed).classic_address == w.classic_address

    def test_bad_secret(self):
        with pytest.raises(WalletError):
            generate_wallet("not-a-seed")
