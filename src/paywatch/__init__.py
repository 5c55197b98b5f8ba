"""
paywatch - reconcile off-chain payment intents against Solana settlement.

A payer is told to send an amount to the treasury address; paywatch later
finds the matching ledger transaction, either through the Solscan indexer
or straight from an RPC node.

Usage:
    >>> from paywatch import PaymentVerifier
    >>>
    >>> async with PaymentVerifier(treasury_address="7xKX...") as verifier:
    ...     receipt = await verifier.create_payment_intent_sol("user-1", "1.5")
    ...     status = await verifier.get_payment_status(receipt.id)
    ...     status.confirmed
"""

from paywatch.client import PaymentVerifier
from paywatch.core.config import Config
from paywatch.core.exceptions import (
    ConfigurationError,
    ExternalServiceError,
    IntentNotFoundError,
    PaywatchError,
    ValidationError,
)
from paywatch.core.logging import configure_logging, get_logger
from paywatch.core.types import (
    LAMPORTS_PER_SOL,
    BalanceChange,
    Cluster,
    ConfirmationResult,
    IntentReceipt,
    IntentStatus,
    LedgerTransaction,
    MatchOutcome,
    MatchResult,
    PaymentIntent,
    PaymentStatusView,
    PendingIntentView,
    SweepReport,
    lamports_to_sol,
    sol_to_lamports,
)
from paywatch.intents import IntentStore, IntentSweeper, LifecycleController
from paywatch.matching import TransactionMatcher
from paywatch.sources import RpcTransactionSource, SolscanTransactionSource, TransactionSource

__version__ = "0.1.0"
__all__ = [
    # Main entry point
    "PaymentVerifier",
    # Engine parts
    "IntentStore",
    "IntentSweeper",
    "LifecycleController",
    "TransactionMatcher",
    "TransactionSource",
    "RpcTransactionSource",
    "SolscanTransactionSource",
    # Types
    "Cluster",
    "IntentStatus",
    "PaymentIntent",
    "LedgerTransaction",
    "BalanceChange",
    "MatchOutcome",
    "MatchResult",
    "ConfirmationResult",
    "SweepReport",
    "IntentReceipt",
    "PaymentStatusView",
    "PendingIntentView",
    "LAMPORTS_PER_SOL",
    "sol_to_lamports",
    "lamports_to_sol",
    # Config & logging
    "Config",
    "configure_logging",
    "get_logger",
    # Exceptions
    "PaywatchError",
    "ConfigurationError",
    "ValidationError",
    "IntentNotFoundError",
    "ExternalServiceError",
]
