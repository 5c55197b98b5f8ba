"""TransactionMatcher - asks transaction sources, in order, whether an intent is paid."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from paywatch.core.logging import get_logger
from paywatch.core.types import MatchOutcome, MatchResult, PaymentIntent

if TYPE_CHECKING:
    from paywatch.resilience.circuit import CircuitBreaker
    from paywatch.sources.base import TransactionSource


class TransactionMatcher:
    """
    Composes transaction sources with a primary/fallback policy.

    Sources are tried by priority. An inconclusive source (error, timeout,
    open circuit) hands over to the next one; the first definitive answer,
    matched or not, is final. When every source is inconclusive the result
    is inconclusive too, which callers treat as "not paid yet".
    """

    def __init__(
        self,
        sources: Sequence[TransactionSource],
        treasury_address: str,
        candidate_limit: int = 10,
        tolerance: int = 1000,
        source_timeout: float = 10.0,
        breakers: Mapping[str, CircuitBreaker] | None = None,
    ) -> None:
        self._sources = sorted(sources, key=lambda s: s.get_priority())
        self._treasury_address = treasury_address
        self._candidate_limit = candidate_limit
        self._tolerance = tolerance
        self._source_timeout = source_timeout
        self._breakers = dict(breakers or {})
        self._logger = get_logger("matcher")

    @property
    def sources(self) -> list[TransactionSource]:
        return list(self._sources)

    async def match(self, intent: PaymentIntent) -> MatchResult:
        """Look for a ledger transaction that pays ``intent``."""
        last = MatchResult.inconclusive(error="no transaction sources configured")

        for source in self._sources:
            breaker = self._breakers.get(source.name)
            if breaker is not None and not await breaker.is_available():
                self._logger.info(f"Skipping {source.name}: circuit open")
                last = MatchResult.inconclusive(source=source.name, error="circuit open")
                continue

            result = await source.match_against(
                intent,
                self._treasury_address,
                limit=self._candidate_limit,
                tolerance=self._tolerance,
                timeout=self._source_timeout,
            )

            if breaker is not None:
                if result.is_definitive:
                    await breaker.record_success()
                else:
                    await breaker.record_failure()

            if result.is_definitive:
                if result.outcome == MatchOutcome.MATCHED and result.transaction is not None:
                    self._logger.info(
                        f"Intent {intent.id} matched {result.transaction.ref} via {source.name}"
                    )
                return result

            self._logger.warning(
                f"{source.name} inconclusive for intent {intent.id} ({result.error}); trying next source"
            )
            last = result

        return last

    async def close(self) -> None:
        for source in self._sources:
            await source.close()
