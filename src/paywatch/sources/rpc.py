"""
RpcTransactionSource - reads treasury transactions straight from a Solana node.

Uses the JSON-RPC methods ``getSignaturesForAddress`` and ``getTransaction``
and derives per-account lamport deltas from the pre/post balances.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from paywatch.core.exceptions import ExternalServiceError
from paywatch.core.types import BalanceChange, LedgerTransaction
from paywatch.sources.http import HttpTransactionSource


class RpcTransactionSource(HttpTransactionSource):
    """Transaction source for a Solana JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        retries: int = 3,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout, retries=retries)
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._request_id = 0

    @property
    def name(self) -> str:
        return "rpc"

    def get_priority(self) -> int:
        return 100

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        data = await self._request_json("POST", self._rpc_url, json=body)

        if not isinstance(data, dict):
            raise self._malformed(f"{method} returned {type(data).__name__}", self._rpc_url)
        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ExternalServiceError(
                f"{method} failed: {message}",
                source=self.name,
                url=self._rpc_url,
                details={"rpc_code": code},
            )
        if "result" not in data:
            raise self._malformed(f"{method} has no result", self._rpc_url)
        return data["result"]

    async def fetch_recent_transactions(
        self,
        address: str,
        limit: int,
        since: datetime | None = None,
    ) -> list[LedgerTransaction]:
        signatures = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self._commitment}],
        )
        if not isinstance(signatures, list):
            raise self._malformed("signature list expected", self._rpc_url)

        transactions: list[LedgerTransaction] = []
        for entry in signatures:
            try:
                signature = entry["signature"]
                block_time = entry.get("blockTime")
                failed = entry.get("err") is not None
            except (KeyError, TypeError, AttributeError) as e:
                raise self._malformed(f"signature entry {entry!r}", self._rpc_url) from e

            if block_time is None:
                # Not timestamped yet; it will show up on a later poll
                continue
            timestamp = self._block_time(block_time, self._rpc_url)
            if since is not None and timestamp < since:
                continue
            if failed:
                transactions.append(
                    LedgerTransaction(ref=signature, timestamp=timestamp, success=False)
                )
                continue

            detail = await self._call(
                "getTransaction",
                [
                    signature,
                    {
                        "encoding": "json",
                        "commitment": self._commitment,
                        "maxSupportedTransactionVersion": 0,
                    },
                ],
            )
            if detail is None or (isinstance(detail, dict) and detail.get("meta") is None):
                # Unknown to the node, or stored without its status metadata
                continue
            transactions.append(self._parse_transaction(signature, timestamp, detail))

        return transactions

    def _parse_transaction(
        self, signature: str, timestamp: datetime, detail: Any
    ) -> LedgerTransaction:
        try:
            meta = detail["meta"]
            message = detail["transaction"]["message"]
            keys = [k["pubkey"] if isinstance(k, dict) else k for k in message["accountKeys"]]
            loaded = meta.get("loadedAddresses") or {}
            keys += list(loaded.get("writable", [])) + list(loaded.get("readonly", []))
            pre = meta["preBalances"]
            post = meta["postBalances"]
            num_signers = message["header"]["numRequiredSignatures"]

            if len(pre) != len(keys) or len(post) != len(keys):
                raise self._malformed(
                    f"balance arrays of {signature} do not line up", self._rpc_url
                )
            changes = [
                BalanceChange(account=key, delta=post[i] - pre[i])
                for i, key in enumerate(keys)
                if post[i] != pre[i]
            ]
            signers = keys[:num_signers]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise self._malformed(f"transaction {signature}", self._rpc_url) from e

        return LedgerTransaction(
            ref=signature,
            timestamp=timestamp,
            success=meta.get("err") is None,
            balance_changes=changes,
            signers=signers,
        )
