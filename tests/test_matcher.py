"""
Tests for TransactionMatcher: source ordering, fallback and authoritative answers.
"""

from datetime import timedelta

import pytest

from conftest import START, TREASURY, StubSource, incoming
from paywatch.core.exceptions import ExternalServiceError
from paywatch.core.types import IntentStatus, MatchOutcome, PaymentIntent
from paywatch.matching.matcher import TransactionMatcher
from paywatch.resilience.circuit import CircuitBreaker


@pytest.fixture
def intent():
    return PaymentIntent(
        id="pay_1",
        payer_reference="u1",
        expected_amount=1_500_000_000,
        status=IntentStatus.PENDING,
        created_at=START,
        expires_at=START + timedelta(minutes=30),
    )


def test_sources_sorted_by_priority(matcher):
    assert [s.name for s in matcher.sources] == ["solscan", "rpc"]


@pytest.mark.asyncio
async def test_primary_match(matcher, primary, fallback, intent):
    primary.transactions = [incoming(ref="sig-indexer")]

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.MATCHED
    assert result.transaction.ref == "sig-indexer"
    assert result.source == "solscan"
    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_falls_back_when_primary_fails(matcher, primary, fallback, intent):
    primary.error = ExternalServiceError("rate limited", source="solscan", status_code=429)
    fallback.transactions = [incoming(ref="sig-rpc")]

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.MATCHED
    assert result.transaction.ref == "sig-rpc"
    assert result.source == "rpc"
    assert primary.calls == 1
    assert fallback.calls == 1


@pytest.mark.asyncio
async def test_falls_back_when_primary_times_out(primary, fallback, intent):
    primary.delay = 1.0
    fallback.transactions = [incoming()]
    matcher = TransactionMatcher([primary, fallback], TREASURY, source_timeout=0.05)

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.MATCHED
    assert result.source == "rpc"


@pytest.mark.asyncio
async def test_no_match_from_primary_is_authoritative(matcher, primary, fallback, intent):
    primary.transactions = [incoming(amount=1)]
    fallback.transactions = [incoming()]

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.NO_MATCH
    assert result.source == "solscan"
    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_both_sources_failing_is_inconclusive(matcher, primary, fallback, intent):
    primary.error = ExternalServiceError("down", source="solscan", status_code=503)
    fallback.error = ExternalServiceError("Malformed response: x", source="rpc")

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.INCONCLUSIVE
    assert result.source == "rpc"
    assert "Malformed" in result.error


@pytest.mark.asyncio
async def test_no_sources_is_inconclusive(intent):
    result = await TransactionMatcher([], TREASURY).match(intent)
    assert result.outcome == MatchOutcome.INCONCLUSIVE


@pytest.mark.asyncio
async def test_candidate_limit_is_passed_to_sources(primary, intent):
    primary.transactions = [incoming(ref=f"noise-{i}", amount=1) for i in range(3)]
    primary.transactions.append(incoming(ref="late"))
    matcher = TransactionMatcher([primary], TREASURY, candidate_limit=3)

    result = await matcher.match(intent)

    # The paying transaction is outside the candidate window
    assert result.outcome == MatchOutcome.NO_MATCH


@pytest.mark.asyncio
async def test_tolerance_is_applied(primary, intent):
    primary.transactions = [incoming(amount=1_500_000_000 - 5_000)]

    strict = TransactionMatcher([primary], TREASURY, tolerance=1_000)
    loose = TransactionMatcher([primary], TREASURY, tolerance=5_000)

    assert (await strict.match(intent)).outcome == MatchOutcome.NO_MATCH
    assert (await loose.match(intent)).outcome == MatchOutcome.MATCHED


@pytest.mark.asyncio
async def test_open_circuit_skips_source(storage, primary, fallback, intent):
    primary.transactions = [incoming(ref="sig-indexer")]
    fallback.transactions = [incoming(ref="sig-rpc")]
    breakers = {
        "solscan": CircuitBreaker("source.solscan", storage, failure_threshold=1),
        "rpc": CircuitBreaker("source.rpc", storage, failure_threshold=1),
    }
    await breakers["solscan"].trip()
    matcher = TransactionMatcher([primary, fallback], TREASURY, breakers=breakers)

    result = await matcher.match(intent)

    assert result.source == "rpc"
    assert primary.calls == 0


@pytest.mark.asyncio
async def test_failures_feed_the_circuit_breaker(storage, primary, fallback, intent):
    primary.error = ExternalServiceError("down", source="solscan", status_code=503)
    breaker = CircuitBreaker("source.solscan", storage, failure_threshold=2, recovery_timeout=60)
    matcher = TransactionMatcher([primary, fallback], TREASURY, breakers={"solscan": breaker})

    await matcher.match(intent)
    await matcher.match(intent)
    assert await breaker.is_available() is False

    await matcher.match(intent)
    assert primary.calls == 2
    assert fallback.calls == 3


@pytest.mark.asyncio
async def test_unexpected_source_error_falls_back(storage, primary, fallback, intent):
    primary.error = AttributeError("'NoneType' object has no attribute 'get'")
    fallback.transactions = [incoming(ref="sig-rpc")]
    breaker = CircuitBreaker("source.solscan", storage, failure_threshold=1, recovery_timeout=60)
    matcher = TransactionMatcher([primary, fallback], TREASURY, breakers={"solscan": breaker})

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.MATCHED
    assert result.source == "rpc"
    assert await breaker.is_available() is False


@pytest.mark.asyncio
async def test_unexpected_error_everywhere_is_inconclusive(matcher, primary, fallback, intent):
    primary.error = TypeError("unsupported operand type(s) for -: 'int' and 'NoneType'")
    fallback.error = RuntimeError("boom")

    result = await matcher.match(intent)

    assert result.outcome == MatchOutcome.INCONCLUSIVE
    assert "RuntimeError" in result.error


@pytest.mark.asyncio
async def test_close_closes_sources(matcher, primary, fallback):
    await matcher.close()
    assert primary.closed and fallback.closed


@pytest.mark.asyncio
async def test_matching_is_pure_over_the_same_candidates(primary, intent):
    primary.transactions = [incoming(ref="a", amount=1), incoming(ref="b")]
    matcher = TransactionMatcher([primary], TREASURY)

    first = await matcher.match(intent)
    second = await matcher.match(intent)

    assert first.transaction.ref == second.transaction.ref == "b"
    assert intent.status == IntentStatus.PENDING
