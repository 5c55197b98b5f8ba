"""
Tests for RpcTransactionSource against a mocked Solana JSON-RPC endpoint.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import PAYER_WALLET, START, TREASURY
from paywatch.core.exceptions import ExternalServiceError
from paywatch.sources.rpc import RpcTransactionSource

RPC_URL = "https://rpc.test"
SYSTEM_PROGRAM = "11111111111111111111111111111111"
BLOCK_TIME = int(START.timestamp()) + 60


def signature_entry(signature, block_time=BLOCK_TIME, err=None):
    return {"signature": signature, "slot": 1, "blockTime": block_time, "err": err}


def transaction_detail(amount=1_500_000_000, payer=PAYER_WALLET, treasury=TREASURY, err=None):
    fee = 5000
    return {
        "blockTime": BLOCK_TIME,
        "meta": {
            "err": err,
            "fee": fee,
            "preBalances": [10_000_000_000, 2_000_000_000, 1],
            "postBalances": [10_000_000_000 - amount - fee, 2_000_000_000 + amount, 1],
            "loadedAddresses": {"writable": [], "readonly": []},
        },
        "transaction": {
            "message": {
                "accountKeys": [payer, treasury, SYSTEM_PROGRAM],
                "header": {"numRequiredSignatures": 1},
            },
        },
    }


class FakeRpc:
    """Routes JSON-RPC calls to canned results and records what was asked."""

    def __init__(self, signatures=None, details=None):
        self.signatures = signatures or []
        self.details = details or {}
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append((body["method"], body["params"]))
        if body["method"] == "getSignaturesForAddress":
            result = self.signatures
        else:
            result = self.details.get(body["params"][0])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self):
        return [method for method, _ in self.calls]


def make_source(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RpcTransactionSource(RPC_URL, http_client=client, retries=1, **kwargs)


@pytest.mark.asyncio
async def test_parses_incoming_transfer():
    rpc = FakeRpc(signatures=[signature_entry("sig-1")], details={"sig-1": transaction_detail()})
    source = make_source(rpc)

    transactions = await source.fetch_recent_transactions(TREASURY, 10)

    assert len(transactions) == 1
    tx = transactions[0]
    assert tx.ref == "sig-1"
    assert tx.success is True
    assert tx.timestamp == datetime.fromtimestamp(BLOCK_TIME, tz=timezone.utc)
    assert tx.received_by(TREASURY) == 1_500_000_000
    assert tx.signers == [PAYER_WALLET]
    # Unchanged balances are not reported
    assert SYSTEM_PROGRAM not in [c.account for c in tx.balance_changes]


@pytest.mark.asyncio
async def test_request_shape():
    rpc = FakeRpc(signatures=[signature_entry("sig-1")], details={"sig-1": transaction_detail()})
    source = make_source(rpc, commitment="finalized")

    await source.fetch_recent_transactions(TREASURY, 7)

    (method, params), (detail_method, detail_params) = rpc.calls
    assert method == "getSignaturesForAddress"
    assert params == [TREASURY, {"limit": 7, "commitment": "finalized"}]
    assert detail_method == "getTransaction"
    assert detail_params[0] == "sig-1"
    assert detail_params[1]["maxSupportedTransactionVersion"] == 0


@pytest.mark.asyncio
async def test_skips_details_of_transactions_before_since():
    rpc = FakeRpc(
        signatures=[
            signature_entry("sig-new"),
            signature_entry("sig-old", block_time=int(START.timestamp()) - 3600),
        ],
        details={"sig-new": transaction_detail()},
    )
    source = make_source(rpc)

    transactions = await source.fetch_recent_transactions(TREASURY, 10, since=START)

    assert [tx.ref for tx in transactions] == ["sig-new"]
    assert rpc.methods() == ["getSignaturesForAddress", "getTransaction"]


@pytest.mark.asyncio
async def test_failed_and_untimed_signatures():
    rpc = FakeRpc(
        signatures=[
            signature_entry("sig-failed", err={"InstructionError": [0, "Custom"]}),
            signature_entry("sig-pending", block_time=None),
        ],
    )
    source = make_source(rpc)

    transactions = await source.fetch_recent_transactions(TREASURY, 10)

    assert [(tx.ref, tx.success) for tx in transactions] == [("sig-failed", False)]
    # Failed transactions carry no details worth fetching
    assert rpc.methods() == ["getSignaturesForAddress"]


@pytest.mark.asyncio
async def test_missing_transaction_detail_is_skipped():
    rpc = FakeRpc(signatures=[signature_entry("sig-1")], details={})
    source = make_source(rpc)

    assert await source.fetch_recent_transactions(TREASURY, 10) == []


@pytest.mark.asyncio
async def test_versioned_transaction_loaded_addresses():
    detail = transaction_detail()
    # The treasury is only reachable through an address lookup table
    detail["transaction"]["message"]["accountKeys"] = [PAYER_WALLET, SYSTEM_PROGRAM]
    detail["meta"]["loadedAddresses"] = {"writable": [TREASURY], "readonly": []}
    detail["meta"]["preBalances"] = [10_000_000_000, 1, 0]
    detail["meta"]["postBalances"] = [8_499_995_000, 1, 1_500_000_000]
    rpc = FakeRpc(signatures=[signature_entry("sig-v0")], details={"sig-v0": detail})

    transactions = await make_source(rpc).fetch_recent_transactions(TREASURY, 10)

    assert transactions[0].received_by(TREASURY) == 1_500_000_000


@pytest.mark.asyncio
async def test_json_rpc_error_raises():
    def handler(request):
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}},
        )

    with pytest.raises(ExternalServiceError) as exc_info:
        await make_source(handler).fetch_recent_transactions(TREASURY, 10)

    assert exc_info.value.source == "rpc"
    assert exc_info.value.details["rpc_code"] == -32005


@pytest.mark.asyncio
async def test_http_429_raises_rate_limited():
    def handler(request):
        return httpx.Response(429, json={"error": "Too many requests"})

    with pytest.raises(ExternalServiceError) as exc_info:
        await make_source(handler).fetch_recent_transactions(TREASURY, 10)

    assert exc_info.value.is_rate_limited()


@pytest.mark.asyncio
async def test_malformed_payloads_raise():
    def not_json(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    def wrong_shape(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"not": "a list"}})

    for handler in (not_json, wrong_shape):
        with pytest.raises(ExternalServiceError):
            await make_source(handler).fetch_recent_transactions(TREASURY, 10)


@pytest.mark.asyncio
async def test_mismatched_balance_arrays_raise():
    detail = transaction_detail()
    detail["meta"]["postBalances"] = detail["meta"]["postBalances"][:2]
    rpc = FakeRpc(signatures=[signature_entry("sig-1")], details={"sig-1": detail})

    with pytest.raises(ExternalServiceError, match="do not line up"):
        await make_source(rpc).fetch_recent_transactions(TREASURY, 10)


@pytest.mark.asyncio
async def test_transaction_without_meta_is_skipped():
    detail = transaction_detail()
    detail["meta"] = None
    rpc = FakeRpc(
        signatures=[signature_entry("sig-1"), signature_entry("sig-2")],
        details={"sig-1": detail, "sig-2": transaction_detail()},
    )

    transactions = await make_source(rpc).fetch_recent_transactions(TREASURY, 10)

    assert [tx.ref for tx in transactions] == ["sig-2"]


@pytest.mark.asyncio
async def test_null_balance_entry_raises():
    detail = transaction_detail()
    detail["meta"]["preBalances"][1] = None
    rpc = FakeRpc(signatures=[signature_entry("sig-1")], details={"sig-1": detail})

    with pytest.raises(ExternalServiceError, match="Malformed response: transaction sig-1"):
        await make_source(rpc).fetch_recent_transactions(TREASURY, 10)


@pytest.mark.asyncio
async def test_connection_error_is_retried_then_raised():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = RpcTransactionSource(RPC_URL, http_client=client, retries=2)

    with pytest.raises(ExternalServiceError) as exc_info:
        await source.fetch_recent_transactions(TREASURY, 10)

    assert exc_info.value.is_transient()
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(FakeRpc()))
    source = RpcTransactionSource(RPC_URL, http_client=client)

    await source.close()

    assert not client.is_closed
    await client.aclose()
