"""
Rules deciding whether a ledger transaction pays a given intent.

All amounts are lamports. Only transactions timestamped at or after the
intent was created can pay it; anything earlier belongs to someone else.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from paywatch.core.types import LedgerTransaction, PaymentIntent


def window_start(intent: PaymentIntent) -> datetime:
    """Earliest ledger timestamp that may pay this intent."""
    return intent.created_at


def is_in_window(intent: PaymentIntent, tx: LedgerTransaction) -> bool:
    return tx.timestamp >= window_start(intent)


def is_incoming(tx: LedgerTransaction, treasury_address: str) -> bool:
    """Only transfers that credit the treasury, and that it did not sign, count."""
    if tx.is_signed_by(treasury_address):
        return False
    return tx.received_by(treasury_address) > 0


def amount_matches(received: int, expected: int, tolerance: int) -> bool:
    return abs(received - expected) <= tolerance


def is_match(
    intent: PaymentIntent,
    tx: LedgerTransaction,
    treasury_address: str,
    tolerance: int,
) -> bool:
    if not tx.success:
        return False
    if not is_in_window(intent, tx):
        return False
    if not is_incoming(tx, treasury_address):
        return False
    return amount_matches(tx.received_by(treasury_address), intent.expected_amount, tolerance)


def find_match(
    intent: PaymentIntent,
    candidates: Iterable[LedgerTransaction],
    treasury_address: str,
    tolerance: int,
) -> LedgerTransaction | None:
    """Return the first candidate, in delivery order, that pays the intent."""
    for tx in candidates:
        if is_match(intent, tx, treasury_address, tolerance):
            return tx
    return None
