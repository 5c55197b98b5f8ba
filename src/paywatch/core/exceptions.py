"""
Exception hierarchy for paywatch.

All package-specific exceptions inherit from PaywatchError for easy catching.
"""

from __future__ import annotations

from typing import Any


class PaywatchError(Exception):
    """
    Base exception for all paywatch errors.

    Example:
        >>> try:
        ...     await verifier.get_payment_status(intent_id)
        ... except PaywatchError as e:
        ...     print(f"Payment lookup failed: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PaywatchError):
    """
    Configuration is missing or invalid.

    Raised when:
    - A storage backend name is unknown
    - A component is wired without a required collaborator
    """

    pass


class ValidationError(PaywatchError):
    """
    Caller input was rejected.

    Raised when:
    - The payer reference is missing
    - The expected amount is missing, fractional or not positive
    - Metadata is not a mapping

    Always reported to the caller, never retried.
    """

    pass


class IntentNotFoundError(PaywatchError):
    """No payment intent is held under the given id."""

    def __init__(
        self,
        intent_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Payment intent not found: {intent_id}", details)
        self.intent_id = intent_id


class ExternalServiceError(PaywatchError):
    """
    A ledger node or indexing service could not answer.

    Raised when:
    - The HTTP request fails (timeout, connection error)
    - The service returns an error status or a JSON-RPC error
    - The response body does not have the expected shape

    The matcher recovers from this locally, either by falling back to the
    next source or by reporting the check as inconclusive.
    """

    def __init__(
        self,
        message: str,
        source: str = "unknown",
        status_code: int | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.source = source
        self.status_code = status_code
        self.url = url

    def __str__(self) -> str:
        base = f"[{self.source}] {self.message}"
        if self.status_code is not None:
            base = f"{base} (HTTP {self.status_code})"
        return base

    def is_rate_limited(self) -> bool:
        """Check if this is a rate limit error."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if this is a server-side error."""
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_transient(self) -> bool:
        """Connection failures, rate limits and 5xx responses are worth retrying."""
        if self.status_code is None:
            return bool(self.details.get("transient", False))
        return self.is_rate_limited() or self.is_server_error()
