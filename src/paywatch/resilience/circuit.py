"""
Circuit breaker for transaction sources, with its state kept in storage.

With the Redis backend every process polling the same sources shares one
view of which source is failing.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import TYPE_CHECKING

from paywatch.core.logging import get_logger

if TYPE_CHECKING:
    from paywatch.storage.base import StorageBackend


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Source is called normally
    OPEN = "open"  # Source is skipped until the recovery time
    HALF_OPEN = "half_open"  # Next call decides between CLOSED and OPEN


class CircuitBreaker:
    """
    Tracks the health of one transaction source.

    ``failure_threshold`` inconclusive lookups open the circuit and the
    matcher skips the source for ``recovery_timeout`` seconds. The next
    lookup after that is a trial call: success closes the circuit, failure
    opens it again straight away.

    HALF_OPEN does not limit concurrency: every caller that checks
    ``is_available`` while the circuit is HALF_OPEN is let through, so
    several concurrent polls may all hit a recovering source. The first
    outcome recorded decides the next state.
    """

    COLLECTION = "resilience"

    def __init__(
        self,
        service_name: str,
        storage: StorageBackend,
        failure_threshold: int = 5,
        recovery_timeout: float = 30,
    ) -> None:
        self.service = service_name
        self.threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._storage = storage
        self._logger = get_logger(f"circuit.{service_name}")

        prefix = f"circuit:{service_name}"
        self._state_key = f"{prefix}:state"
        self._failures_key = f"{prefix}:failures"
        self._reopen_key = f"{prefix}:recovery_ts"

    async def get_state(self) -> CircuitState:
        record = await self._storage.get(self.COLLECTION, self._state_key)
        if record is None:
            return CircuitState.CLOSED
        return CircuitState(record.get("state", CircuitState.CLOSED.value))

    async def _enter(self, state: CircuitState) -> None:
        await self._storage.save(self.COLLECTION, self._state_key, {"state": state.value})
        self._logger.info(f"{self.service} circuit is now {state.value}")

    async def _reopen_at(self) -> float:
        record = await self._storage.get(self.COLLECTION, self._reopen_key)
        return float(record.get("ts", 0)) if record else 0.0

    async def is_available(self) -> bool:
        """
        Whether the source may be called now. Moves OPEN to HALF_OPEN once due.

        Always True while HALF_OPEN, for every caller.
        """
        state = await self.get_state()
        if state != CircuitState.OPEN:
            return True

        if time.time() < await self._reopen_at():
            return False
        await self._enter(CircuitState.HALF_OPEN)
        return True

    async def record_failure(self) -> None:
        if await self.get_state() == CircuitState.HALF_OPEN:
            self._logger.warning(f"{self.service} failed its trial call")
            await self.trip()
            return

        failures = int(float(await self._storage.atomic_add(self.COLLECTION, self._failures_key, "1")))
        self._logger.warning(f"{self.service} failure {failures}/{self.threshold}")
        if failures >= self.threshold:
            await self.trip()

    async def record_success(self) -> None:
        state = await self.get_state()
        if state == CircuitState.HALF_OPEN:
            await self.close()
            return
        if state == CircuitState.CLOSED:
            # One success forgives one failure, not a whole burst
            remaining = await self._storage.atomic_add(self.COLLECTION, self._failures_key, "-1")
            if float(remaining) <= 0:
                await self._storage.delete(self.COLLECTION, self._failures_key)

    async def trip(self) -> None:
        """Open the circuit for ``recovery_timeout`` seconds."""
        reopen_at = time.time() + self.recovery_timeout
        await self._storage.save(self.COLLECTION, self._reopen_key, {"ts": str(reopen_at)})
        await self._enter(CircuitState.OPEN)
        self._logger.error(f"Skipping {self.service} for {self.recovery_timeout}s")

    async def close(self) -> None:
        """Close the circuit and forget past failures."""
        await self._storage.delete(self.COLLECTION, self._failures_key)
        await self._storage.delete(self.COLLECTION, self._reopen_key)
        await self._enter(CircuitState.CLOSED)
