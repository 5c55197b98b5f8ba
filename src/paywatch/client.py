"""PaymentVerifier - main entry point wiring the reconciliation engine together."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any

from paywatch.core.config import Config
from paywatch.core.logging import configure_logging, get_logger
from paywatch.core.types import (
    AmountType,
    IntentReceipt,
    PaymentStatusView,
    PendingIntentView,
    SweepReport,
    sol_to_lamports,
    utc_now,
)
from paywatch.intents.lifecycle import LifecycleController
from paywatch.intents.store import IntentStore
from paywatch.intents.sweeper import IntentSweeper
from paywatch.matching.matcher import TransactionMatcher
from paywatch.resilience.circuit import CircuitBreaker
from paywatch.sources.base import TransactionSource
from paywatch.sources.rpc import RpcTransactionSource
from paywatch.sources.solscan import SolscanTransactionSource
from paywatch.storage import StorageBackend, get_storage


class PaymentVerifier:
    """
    Reconciles payment intents against the Solana ledger.

    Exposes the three operations an HTTP layer wraps one to one:
    ``create_payment_intent``, ``get_payment_status`` and
    ``list_pending_for_payer``.

    Example:
        >>> async with PaymentVerifier(treasury_address="7xKX...") as verifier:
        ...     receipt = await verifier.create_payment_intent("u1", 1_500_000_000)
        ...     status = await verifier.get_payment_status(receipt.id)
    """

    def __init__(
        self,
        config: Config | None = None,
        storage: StorageBackend | None = None,
        sources: Sequence[TransactionSource] | None = None,
        clock: Callable[[], datetime] = utc_now,
        **overrides: Any,
    ) -> None:
        """
        Initialize the verifier.

        Args:
            config: Full configuration (or built from env plus ``overrides``)
            storage: Storage backend (or chosen by ``config.storage_backend``)
            sources: Transaction sources (or Solscan then RPC from config)
            clock: Source of the current UTC time
            **overrides: Config fields overriding the environment
        """
        self._config = config or Config.from_env(**overrides)
        configure_logging(level=self._config.log_level)
        self._logger = get_logger("verifier")

        if storage is None:
            storage_kwargs = {}
            if self._config.storage_backend == "redis" and self._config.redis_url:
                storage_kwargs["redis_url"] = self._config.redis_url
            storage = get_storage(self._config.storage_backend, **storage_kwargs)
        self._storage = storage

        if sources is None:
            sources = self._default_sources(self._config)

        breakers = None
        if self._config.circuit_breaker_enabled:
            breakers = {s.name: CircuitBreaker(f"source.{s.name}", self._storage) for s in sources}

        self._matcher = TransactionMatcher(
            sources,
            self._config.treasury_address,
            candidate_limit=self._config.candidate_limit,
            tolerance=self._config.amount_tolerance,
            source_timeout=self._config.source_timeout,
            breakers=breakers,
        )
        self._store = IntentStore(self._storage)
        self._controller = LifecycleController(
            self._store,
            self._matcher,
            self._config.treasury_address,
            intent_ttl=self._config.intent_ttl,
            retention=self._config.retention,
            expire_pending_on_sweep=self._config.expire_pending_on_sweep,
            clock=clock,
        )
        self._sweeper = IntentSweeper(self._controller, interval=self._config.sweep_interval)

        self._logger.info(
            f"Verifier ready (cluster: {self._config.cluster.value}, "
            f"sources: {[s.name for s in self._matcher.sources]})"
        )

    @staticmethod
    def _default_sources(config: Config) -> list[TransactionSource]:
        sources: list[TransactionSource] = [
            RpcTransactionSource(
                config.resolved_rpc_url,
                timeout=config.source_timeout,
                retries=config.http_retries,
            )
        ]
        if config.use_indexer:
            sources.append(
                SolscanTransactionSource(
                    config.indexer_url,
                    api_key=config.indexer_api_key,
                    timeout=config.source_timeout,
                    retries=config.http_retries,
                )
            )
        return sources

    @property
    def config(self) -> Config:
        return self._config

    @property
    def controller(self) -> LifecycleController:
        return self._controller

    @property
    def matcher(self) -> TransactionMatcher:
        return self._matcher

    @property
    def store(self) -> IntentStore:
        return self._store

    @property
    def sweeper(self) -> IntentSweeper:
        return self._sweeper

    async def __aenter__(self) -> PaymentVerifier:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def start(self) -> None:
        """Start the periodic cleanup task."""
        self._sweeper.start()

    async def close(self) -> None:
        """Stop the cleanup task and release network and storage connections."""
        await self._sweeper.stop()
        await self._matcher.close()
        await self._storage.close()

    async def create_payment_intent(
        self,
        payer_reference: str,
        expected_amount: int,
        metadata: Mapping[str, Any] | None = None,
    ) -> IntentReceipt:
        """
        Open a payment intent.

        Args:
            payer_reference: Opaque id of the payer
            expected_amount: Amount in lamports
            metadata: Opaque data returned verbatim

        Raises:
            ValidationError: On a missing payer reference or non-positive amount
        """
        intent = await self._controller.create_intent(payer_reference, expected_amount, metadata)
        return IntentReceipt(
            id=intent.id,
            treasury_address=self._controller.treasury_address,
            expected_amount=intent.expected_amount,
            expires_at=intent.expires_at,
        )

    async def create_payment_intent_sol(
        self,
        payer_reference: str,
        amount_sol: AmountType,
        metadata: Mapping[str, Any] | None = None,
    ) -> IntentReceipt:
        """Same as ``create_payment_intent`` with the amount given in SOL."""
        return await self.create_payment_intent(
            payer_reference, sol_to_lamports(amount_sol), metadata
        )

    async def get_payment_status(self, intent_id: str) -> PaymentStatusView:
        """
        Check an intent against the ledger and report its status.

        Raises:
            IntentNotFoundError: If the id is unknown
        """
        result = await self._controller.check_status(intent_id)
        return PaymentStatusView.from_intent(result.intent)

    async def list_pending_for_payer(self, payer_reference: str) -> list[PendingIntentView]:
        intents = await self._controller.list_pending(payer_reference)
        return [PendingIntentView.from_intent(i) for i in intents]

    async def sweep(self) -> SweepReport:
        """Run one cleanup pass now."""
        return await self._sweeper.run_once()
