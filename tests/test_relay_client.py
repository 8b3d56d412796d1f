"""Unit tests for RelayClient using httpx.MockTransport."""

import base64
import json
import time

import httpx
import pytest

from common.constants import PAYMENT_HEADER, PAYMENT_RESPONSE_HEADER
from common.exceptions import (
    RelayAuthenticationError,
    RelayBalanceError,
    RelayFundingError,
    RelaySubmitError,
)
from common.signing import Ed25519Signer
from relay.relay_client import RelayClient, RelaySession
from uploader.transaction_prep import build_chunked_plan

SPONSOR = "0x" + "5c" * 20
CHAIN_ID = 8453


def _settlement_header(tx_hash: str) -> str:
    return base64.b64encode(json.dumps({"success": True, "transaction": tx_hash}).encode()).decode()


def _client(handler, signer=None):
    return RelayClient(
        "http://relay",
        CHAIN_ID,
        signer or Ed25519Signer.generate(),
        "relay-secret",
        payment_settle_delay=0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_fund_answers_payment_challenge_and_verifies():
    requests = []

    def handler(request):
        requests.append(request)
        body = json.loads(request.content)
        if request.url.path == f"/api/relay/{CHAIN_ID}/fund":
            if PAYMENT_HEADER not in request.headers:
                return httpx.Response(402, json={"accepts": [{"scheme": "exact", "maxAmountRequired": "100"}]})
            return httpx.Response(
                200,
                json={"success": True, "payer": body["operatorAddress"]},
                headers={PAYMENT_RESPONSE_HEADER: _settlement_header("0xpay")},
            )
        if request.url.path == "/api/relay/fund/verify":
            assert body["paymentTxHash"] == "0xpay"
            return httpx.Response(200, json={"success": True, "backendWalletAddress": SPONSOR})
        return httpx.Response(404)

    async with _client(handler) as client:
        result = await client.fund()

    assert result.payment_tx_hash == "0xpay"
    assert result.sponsor_address == SPONSOR
    assert [r.url.path for r in requests] == [
        f"/api/relay/{CHAIN_ID}/fund",
        f"/api/relay/{CHAIN_ID}/fund",
        "/api/relay/fund/verify",
    ]
    payment = json.loads(base64.b64decode(requests[1].headers[PAYMENT_HEADER]))
    assert payment["payload"]["authorization"]["requirements"]["accepts"][0]["scheme"] == "exact"
    first_body = json.loads(requests[0].content)
    assert first_body["secretKey"] == "relay-secret"
    assert first_body["chainId"] == CHAIN_ID


@pytest.mark.asyncio
async def test_fund_rejected_payment():
    async with _client(lambda request: httpx.Response(402, json={"error": "insufficient funds"})) as client:
        with pytest.raises(RelayFundingError) as exc_info:
            await client.fund()

    assert exc_info.value.status_code == 402


@pytest.mark.asyncio
async def test_fund_without_settlement_header():
    async with _client(lambda request: httpx.Response(200, json={"success": True})) as client:
        with pytest.raises(RelayFundingError):
            await client.fund()


@pytest.mark.asyncio
async def test_create_session_stores_token():
    signer = Ed25519Signer.generate()
    expires_at = int(time.time()) + 3600

    def handler(request):
        body = json.loads(request.content)
        assert request.url.path == "/api/relay/session"
        assert body["operatorAddress"] == signer.address
        assert body["publicKey"] == signer.public_key
        assert body["expiresIn"] == 3600
        assert body["signature"].startswith("0x")
        return httpx.Response(200, json={"success": True, "sessionToken": "tok", "expiresAt": expires_at})

    async with _client(handler, signer=signer) as client:
        session = await client.create_session(3600)

    assert session == RelaySession(token="tok", expires_at=expires_at)
    assert client.session == session
    assert not session.is_expired()
    assert session.is_expired(now=expires_at)


@pytest.mark.asyncio
async def test_create_session_failure_is_authentication_error():
    async with _client(lambda request: httpx.Response(401, json={"error": "bad signature"})) as client:
        with pytest.raises(RelayAuthenticationError):
            await client.create_session()


@pytest.mark.asyncio
async def test_check_balance():
    def handler(request):
        return httpx.Response(200, json={
            "success": True,
            "backendWalletAddress": SPONSOR,
            "balanceWei": "1000",
            "balanceEth": "0.000000000000001",
            "sufficientBalance": True,
            "minRequiredWei": "10",
            "minRequiredEth": "0.00000000000000001",
        })

    async with _client(handler) as client:
        balance = await client.check_balance()

    assert balance.sufficient_balance
    assert balance.backend_wallet_address == SPONSOR


@pytest.mark.asyncio
async def test_check_balance_endpoint_failure():
    async with _client(lambda request: httpx.Response(500, text="boom")) as client:
        with pytest.raises(RelayBalanceError):
            await client.check_balance()


@pytest.mark.asyncio
async def test_network_error_maps_to_relay_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(RelayBalanceError):
            await client.check_balance()


@pytest.mark.asyncio
async def test_submit_requires_session():
    async with _client(lambda request: httpx.Response(200)) as client:
        with pytest.raises(RelayAuthenticationError):
            await client.submit([])


@pytest.mark.asyncio
async def test_submit_sends_batch_with_bearer_token():
    plan = build_chunked_plan("".join(f"{i:04d}" for i in range(75)), "doc1", "label", SPONSOR, chunk_size=100)
    captured = {}

    def handler(request):
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "success": True,
            "transactionHashes": ["0xa", "0xb"],
            "successfulIndexes": [0, 2],
            "failedIndexes": [1],
            "errors": [{"index": 1, "error": "nonce too low"}],
            "transactionsSent": 2,
            "transactionsFailed": 1,
            "backendWalletAddress": SPONSOR,
        })

    async with _client(handler) as client:
        result = await client.submit(plan.chunk_operations, RelaySession(token="tok", expires_at=0))

    assert captured["auth"] == "Bearer tok"
    assert captured["body"]["sessionToken"] == "tok"
    assert captured["body"]["transactions"] == [op.call.to_dict() for op in plan.chunk_operations]
    assert result.successful_indexes == [0, 2]
    assert result.failed_indexes == [1]
    assert result.errors == [{"index": 1, "error": "nonce too low"}]
    assert result.sponsor_address == SPONSOR
    assert result.partially_failed


@pytest.mark.asyncio
async def test_submit_rejected():
    async with _client(lambda request: httpx.Response(200, json={"success": False, "error": "session expired"})) as client:
        with pytest.raises(RelaySubmitError):
            await client.submit([], RelaySession(token="tok", expires_at=0))


@pytest.mark.asyncio
async def test_check_balance_html_body_is_balance_error():
    async with _client(lambda request: httpx.Response(200, text="<html>proxy</html>")) as client:
        with pytest.raises(RelayBalanceError, match="Malformed response"):
            await client.check_balance()


@pytest.mark.asyncio
async def test_create_session_without_success_field():
    async with _client(lambda request: httpx.Response(200, json={"sessionToken": "tok"})) as client:
        with pytest.raises(RelayAuthenticationError):
            await client.create_session()
        assert client.session is None


@pytest.mark.asyncio
async def test_fund_verify_malformed_body():
    def handler(request):
        if request.url.path == f"/api/relay/{CHAIN_ID}/fund":
            return httpx.Response(
                200,
                json={"success": True},
                headers={PAYMENT_RESPONSE_HEADER: _settlement_header("0xpay")},
            )
        return httpx.Response(200, text="not json")

    async with _client(handler) as client:
        with pytest.raises(RelayFundingError, match="Malformed response"):
            await client.fund()


@pytest.mark.asyncio
async def test_fund_non_json_body_without_settlement():
    async with _client(lambda request: httpx.Response(200, text="ok")) as client:
        with pytest.raises(RelayFundingError):
            await client.fund()


@pytest.mark.asyncio
async def test_submit_body_without_success_is_submit_error():
    async with _client(lambda request: httpx.Response(200, json={"ok": True})) as client:
        with pytest.raises(RelaySubmitError, match="Malformed response"):
            await client.submit([], RelaySession(token="tok", expires_at=0))
