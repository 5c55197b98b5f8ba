"""
Base transaction source interface.

Every data source that can report recent treasury transactions implements
this interface, so the matcher composes them without special cases:
- SolscanTransactionSource: third-party indexing service
- RpcTransactionSource: a Solana node's JSON-RPC API
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime

from paywatch.core.exceptions import ExternalServiceError
from paywatch.core.logging import get_logger
from paywatch.core.types import LedgerTransaction, MatchOutcome, MatchResult, PaymentIntent
from paywatch.matching.rules import find_match, window_start


class TransactionSource(ABC):
    """
    Abstract base class for transaction sources.

    Subclasses only fetch and normalise transactions; matching an intent
    against them is shared and lives in ``match_against``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs and match results."""
        ...

    @abstractmethod
    async def fetch_recent_transactions(
        self,
        address: str,
        limit: int,
        since: datetime | None = None,
    ) -> list[LedgerTransaction]:
        """
        Fetch the most recent transactions touching an address.

        Args:
            address: Account to look up (the treasury)
            limit: Maximum number of transactions to consider
            since: Transactions older than this may be skipped without
                fetching their details

        Returns:
            Transactions in the source's delivery order (newest first)

        Raises:
            ExternalServiceError: On network failure, error status or a
                malformed response
        """
        ...

    async def match_against(
        self,
        intent: PaymentIntent,
        treasury_address: str,
        limit: int,
        tolerance: int,
        timeout: float,
    ) -> MatchResult:
        """
        Check whether this source shows the intent as paid.

        Nothing short of cancellation raises: any failure yields an
        inconclusive result so the caller can try another source or poll
        again later.
        """
        logger = get_logger(f"source.{self.name}")
        try:
            candidates = await asyncio.wait_for(
                self.fetch_recent_transactions(
                    treasury_address, limit, since=window_start(intent)
                ),
                timeout=timeout,
            )
        except ExternalServiceError as e:
            logger.warning(f"Lookup failed for intent {intent.id}: {e}")
            return MatchResult.inconclusive(source=self.name, error=str(e))
        except asyncio.TimeoutError:
            logger.warning(f"Lookup for intent {intent.id} timed out after {timeout}s")
            return MatchResult.inconclusive(source=self.name, error=f"timed out after {timeout}s")
        except Exception as e:
            # A bug or an unforeseen payload; cancellation still propagates
            logger.exception(f"Unexpected error looking up intent {intent.id}")
            return MatchResult.inconclusive(
                source=self.name, error=f"unexpected {type(e).__name__}: {e}"
            )

        match = find_match(intent, candidates, treasury_address, tolerance)
        if match is None:
            logger.debug(f"No match for intent {intent.id} among {len(candidates)} candidates")
            return MatchResult(outcome=MatchOutcome.NO_MATCH, source=self.name)
        return MatchResult(outcome=MatchOutcome.MATCHED, transaction=match, source=self.name)

    def get_priority(self) -> int:
        """
        Get source priority for the fallback order.

        Lower number = tried first.
        """
        return 100

    async def close(self) -> None:
        """Release network resources held by the source."""
        return None
