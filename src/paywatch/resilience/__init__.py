"""
Resilience layer for paywatch.

Provides storage-backed circuit breakers and the retry policy used by the
transaction sources.
"""

from .circuit import CircuitBreaker, CircuitState
from .retry import execute_with_retry, is_transient_error, retry_policy

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "retry_policy",
    "execute_with_retry",
    "is_transient_error",
]
