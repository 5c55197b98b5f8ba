"""
SolscanTransactionSource - reads treasury transactions from the Solscan API.

Lists recent transactions for the account, then fetches the detail of each
one inside the window to learn who paid whom.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from paywatch.core.types import LAMPORTS_PER_SOL, BalanceChange, LedgerTransaction
from paywatch.sources.http import HttpTransactionSource

# parsedInstruction types that move native SOL
TRANSFER_INSTRUCTION_TYPES = ("transfer", "sol-transfer")


class SolscanTransactionSource(HttpTransactionSource):
    """Transaction source for the Solscan public API."""

    DEFAULT_BASE_URL = "https://public-api.solscan.io"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        retries: int = 3,
    ) -> None:
        headers = {"token": api_key} if api_key else None
        super().__init__(http_client=http_client, timeout=timeout, retries=retries, headers=headers)
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

    @property
    def name(self) -> str:
        return "solscan"

    def get_priority(self) -> int:
        return 50

    async def fetch_recent_transactions(
        self,
        address: str,
        limit: int,
        since: datetime | None = None,
    ) -> list[LedgerTransaction]:
        url = f"{self._base_url}/account/transactions"
        listing = await self._request_json("GET", url, params={"account": address, "limit": limit})
        if not isinstance(listing, list):
            raise self._malformed("transaction list expected", url)

        transactions: list[LedgerTransaction] = []
        for entry in listing:
            try:
                tx_hash = entry["txHash"]
                block_time = entry.get("blockTime")
                status = entry.get("status")
            except (KeyError, TypeError, AttributeError) as e:
                raise self._malformed(f"transaction entry {entry!r}", url) from e

            if block_time is None:
                continue
            timestamp = self._block_time(block_time, url)
            if since is not None and timestamp < since:
                continue
            if status is not None and not _is_success(status):
                # Only an explicit failure skips the detail lookup
                transactions.append(LedgerTransaction(ref=tx_hash, timestamp=timestamp, success=False))
                continue

            detail_url = f"{self._base_url}/transaction/{tx_hash}"
            detail = await self._request_json("GET", detail_url)
            if not isinstance(detail, dict):
                raise self._malformed(f"detail of {tx_hash}", detail_url)
            transactions.append(self._parse_detail(tx_hash, timestamp, detail, detail_url))

        return transactions

    def _parse_detail(
        self, tx_hash: str, timestamp: datetime, detail: dict[str, Any], url: str
    ) -> LedgerTransaction:
        deltas: dict[str, int] = defaultdict(int)
        try:
            transfers = detail.get("solTransfers")
            if transfers:
                scale = 1
            else:
                # parsedInstruction params carry SOL, not lamports
                scale = LAMPORTS_PER_SOL
                transfers = [
                    ins.get("params") or {}
                    for ins in detail.get("parsedInstruction") or []
                    if isinstance(ins, dict) and ins.get("type") in TRANSFER_INSTRUCTION_TYPES
                ]
            for transfer in transfers:
                amount = _parse_lamports(transfer["amount"], scale)
                deltas[transfer["destination"]] += amount
                if transfer.get("source"):
                    deltas[transfer["source"]] -= amount

            signers = detail.get("signer") or []
            if isinstance(signers, str):
                signers = [signers]
            signers = [str(s) for s in signers]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise self._malformed(f"transfers or signers of {tx_hash}", url) from e

        return LedgerTransaction(
            ref=tx_hash,
            timestamp=timestamp,
            success=_is_success(detail.get("status", "Success")),
            balance_changes=[BalanceChange(account=a, delta=d) for a, d in deltas.items() if d],
            signers=signers,
        )


def _is_success(status: Any) -> bool:
    return str(status).lower() == "success"


def _parse_lamports(value: Any, scale: int = 1) -> int:
    """
    Read an indexer amount as whole lamports.

    ``scale`` is the number of lamports per unit of ``value``: 1 for
    ``solTransfers``, LAMPORTS_PER_SOL for parsed instructions.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    if isinstance(value, int):
        return value * scale
    try:
        amount = Decimal(str(value)) * scale
    except InvalidOperation:
        raise ValueError(f"Not an amount: {value!r}") from None
    if not amount.is_finite() or amount != amount.to_integral_value():
        raise ValueError(f"Not a whole number of lamports: {value!r}")
    return int(amount)
