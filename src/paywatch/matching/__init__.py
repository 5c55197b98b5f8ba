"""Matching of ledger transactions against payment intents."""

from paywatch.matching.matcher import TransactionMatcher
from paywatch.matching.rules import amount_matches, find_match, is_match, window_start

__all__ = [
    "TransactionMatcher",
    "amount_matches",
    "find_match",
    "is_match",
    "window_start",
]
