import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from paywatch.core.types import BalanceChange, LedgerTransaction
from paywatch.intents.lifecycle import LifecycleController
from paywatch.intents.store import IntentStore
from paywatch.matching.matcher import TransactionMatcher
from paywatch.sources.base import TransactionSource
from paywatch.storage.memory import InMemoryStorage

TREASURY = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
PAYER_WALLET = "7EcDhSYGxXyscszYEp35KHN8vvw3svAuLKTzXwCFLtV"

# Half a second past the minute so sub-second window handling is exercised
START = datetime(2025, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock passed wherever a ``clock`` callable is accepted."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubSource(TransactionSource):
    """Transaction source returning scripted transactions or raising a scripted error."""

    def __init__(self, name="stub", transactions=None, error=None, priority=100, delay=0.0):
        self._name = name
        self.transactions = list(transactions or [])
        self.error = error
        self.delay = delay
        self._priority = priority
        self.calls = 0
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    def get_priority(self) -> int:
        return self._priority

    async def fetch_recent_transactions(self, address, limit, since=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.transactions[:limit]

    async def close(self) -> None:
        self.closed = True


def incoming(
    ref="sig-1",
    amount=1_500_000_000,
    at=START,
    payer=PAYER_WALLET,
    treasury=TREASURY,
    success=True,
):
    """A transfer of ``amount`` lamports from ``payer`` to the treasury."""
    return LedgerTransaction(
        ref=ref,
        timestamp=at,
        success=success,
        balance_changes=[
            BalanceChange(account=payer, delta=-(amount + 5000)),
            BalanceChange(account=treasury, delta=amount),
        ],
        signers=[payer],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def store(storage):
    return IntentStore(storage)


@pytest.fixture
def primary():
    return StubSource(name="solscan", priority=50)


@pytest.fixture
def fallback():
    return StubSource(name="rpc", priority=100)


@pytest.fixture
def matcher(primary, fallback):
    return TransactionMatcher([fallback, primary], TREASURY, source_timeout=1.0)


@pytest.fixture
def controller(store, matcher, clock):
    return LifecycleController(store, matcher, TREASURY, clock=clock)
