"""
LifecycleController - drives payment intents through their states.

    pending --[matcher confirms]--> confirmed
    pending --[now > expires_at]--> expired

Expiry is always decided before the ledger is consulted, so an overdue
intent expires even while every transaction source is down.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from paywatch.core.exceptions import ValidationError
from paywatch.core.logging import get_logger
from paywatch.core.types import (
    ConfirmationResult,
    IntentStatus,
    MatchOutcome,
    PaymentIntent,
    SweepReport,
    utc_now,
)

if TYPE_CHECKING:
    from paywatch.intents.store import IntentStore
    from paywatch.matching.matcher import TransactionMatcher


def generate_intent_id() -> str:
    """128 random bits; the id doubles as the caller's handle on the intent."""
    return f"pay_{secrets.token_hex(16)}"


class LifecycleController:
    """Creates intents, checks them against the ledger and cleans them up."""

    def __init__(
        self,
        store: IntentStore,
        matcher: TransactionMatcher,
        treasury_address: str,
        intent_ttl: int = 30 * 60,
        retention: int = 24 * 60 * 60,
        expire_pending_on_sweep: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            store: Intent store
            matcher: Transaction matcher used by status checks
            treasury_address: Address payers are told to pay
            intent_ttl: Seconds an intent stays payable
            retention: Seconds a terminal intent is kept, counted from creation
            expire_pending_on_sweep: Let the sweep expire overdue intents
                nobody has polled
            clock: Source of the current UTC time
        """
        self._store = store
        self._matcher = matcher
        self._treasury_address = treasury_address
        self._ttl = timedelta(seconds=intent_ttl)
        self._retention = timedelta(seconds=retention)
        self._expire_pending_on_sweep = expire_pending_on_sweep
        self._clock = clock
        self._logger = get_logger("lifecycle")

    @property
    def treasury_address(self) -> str:
        return self._treasury_address

    @property
    def store(self) -> IntentStore:
        return self._store

    async def create_intent(
        self,
        payer_reference: str,
        expected_amount: int,
        metadata: Mapping[str, Any] | None = None,
    ) -> PaymentIntent:
        """
        Create a pending intent.

        Args:
            payer_reference: Opaque id of whoever asked to pay
            expected_amount: Amount in lamports
            metadata: Opaque data stored and returned verbatim

        Raises:
            ValidationError: If any argument is missing or invalid
        """
        if not isinstance(payer_reference, str) or not payer_reference.strip():
            raise ValidationError("Payer reference is required")
        if (
            isinstance(expected_amount, bool)
            or not isinstance(expected_amount, int)
            or expected_amount <= 0
        ):
            raise ValidationError(
                "Amount must be a positive number of lamports",
                details={"expected_amount": repr(expected_amount)},
            )
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ValidationError("Metadata must be a mapping")

        created_at = self._clock()
        intent = PaymentIntent(
            id=generate_intent_id(),
            payer_reference=payer_reference,
            expected_amount=expected_amount,
            status=IntentStatus.PENDING,
            created_at=created_at,
            expires_at=created_at + self._ttl,
            metadata=dict(metadata or {}),
        )
        await self._store.create(intent)
        self._logger.info(
            f"Created intent {intent.id} for {payer_reference}: {expected_amount} lamports"
        )
        return intent

    async def check_status(self, intent_id: str) -> ConfirmationResult:
        """
        Bring one intent up to date and report it.

        Terminal intents are returned as they are. Overdue pending intents
        expire without any ledger query. Otherwise the matcher is asked, and
        an inconclusive answer simply leaves the intent pending.

        Raises:
            IntentNotFoundError: If the id is unknown
        """
        await self._store.get(intent_id)

        async with self._store.lock(intent_id):
            intent = await self._store.get(intent_id)
            if intent.is_terminal():
                return ConfirmationResult(intent=intent)

            now = self._clock()
            if intent.is_overdue(now):
                intent.mark_expired(now)
                await self._store.update(intent)
                self._logger.info(f"Intent {intent.id} expired unpaid")
                return ConfirmationResult(intent=intent)

            result = await self._matcher.match(intent)
            if result.outcome == MatchOutcome.MATCHED and result.transaction is not None:
                intent.mark_confirmed(result.transaction.ref, self._clock())
                await self._store.update(intent)
                self._logger.info(
                    f"Intent {intent.id} confirmed by {result.transaction.ref} ({result.source})"
                )

            return ConfirmationResult(intent=intent, checked_ledger=True, source=result.source)

    async def list_pending(self, payer_reference: str) -> list[PaymentIntent]:
        return await self._store.list_by_payer(payer_reference, status=IntentStatus.PENDING)

    async def sweep_expired_and_old(self) -> SweepReport:
        """
        Remove terminal intents older than the retention window.

        Pending intents are never removed. When ``expire_pending_on_sweep``
        is set, overdue pending intents are expired here instead; they are
        removed by a later sweep.
        """
        now = self._clock()
        report = SweepReport()

        for candidate in await self._store.list_all():
            async with self._store.lock(candidate.id):
                intent = await self._store.find(candidate.id)
                if intent is None:
                    continue

                if intent.is_terminal():
                    if now - intent.created_at > self._retention:
                        await self._store.remove(intent.id)
                        report.removed += 1
                elif self._expire_pending_on_sweep and intent.is_overdue(now):
                    intent.mark_expired(now)
                    await self._store.update(intent)
                    report.expired += 1

        if report.removed or report.expired:
            self._logger.info(
                f"Sweep removed {report.removed} and expired {report.expired} intents"
            )
        return report
