"""
Transaction sources the matcher can query.

- SolscanTransactionSource: Solscan indexing API (tried first)
- RpcTransactionSource: Solana JSON-RPC node (fallback)
"""

from paywatch.sources.base import TransactionSource
from paywatch.sources.http import HttpTransactionSource
from paywatch.sources.rpc import RpcTransactionSource
from paywatch.sources.solscan import SolscanTransactionSource

__all__ = [
    "TransactionSource",
    "HttpTransactionSource",
    "RpcTransactionSource",
    "SolscanTransactionSource",
]
