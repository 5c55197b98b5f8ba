"""
Shared HTTP plumbing for sources that talk JSON over HTTPS.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from paywatch.core.exceptions import ExternalServiceError
from paywatch.core.logging import get_logger
from paywatch.resilience.retry import execute_with_retry
from paywatch.sources.base import TransactionSource


class HttpTransactionSource(TransactionSource):
    """
    Transaction source backed by an ``httpx.AsyncClient``.

    Every httpx failure, error status or undecodable body is raised as
    ExternalServiceError; transient ones are retried first.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        retries: int = 3,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._http_client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout
        self._retries = retries
        self._headers = {"Accept": "application/json", **(headers or {})}
        self._logger = get_logger(f"source.{self.name}")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, headers=self._headers)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client if this source created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        client = await self._get_client()
        self._logger.debug(f"{method} {url}")
        try:
            response = await client.request(method, url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ExternalServiceError(
                f"Request timed out: {e}", source=self.name, url=url, details={"transient": True}
            ) from e
        except httpx.TransportError as e:
            raise ExternalServiceError(
                f"Connection failed: {e}", source=self.name, url=url, details={"transient": True}
            ) from e

        if response.status_code >= 400:
            raise ExternalServiceError(
                f"{method} {url} failed",
                source=self.name,
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ExternalServiceError(
                "Response body is not valid JSON", source=self.name, url=url
            ) from e

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request with the retry policy and return the decoded body."""
        return await execute_with_retry(
            self._send, method, url, attempts=self._retries, **kwargs
        )

    def _malformed(self, what: str, url: str | None = None) -> ExternalServiceError:
        return ExternalServiceError(f"Malformed response: {what}", source=self.name, url=url)

    def _block_time(self, value: Any, url: str | None = None) -> datetime:
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise self._malformed(f"block time {value!r}", url) from e
