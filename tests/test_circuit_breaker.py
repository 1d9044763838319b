"""Tests for the circuit breaker state machine and registry."""

from __future__ import annotations

import asyncio

import pytest

from budbringer.exceptions import CircuitOpenError, CircuitTimeoutError
from budbringer.schemas import CircuitState
from budbringer.tools.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)


class Boom(Exception):
    pass


class CountingAction:
    """Async action that fails or succeeds on demand and counts invocations."""

    def __init__(self, fail: bool = False, result: str = "ok") -> None:
        self.fail = fail
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.fail:
            raise Boom("failure")
        return self.result


def _config(**overrides) -> CircuitBreakerConfig:
    values = dict(failure_threshold=3, success_threshold=2, timeout=1.0, reset_timeout=60.0)
    values.update(overrides)
    return CircuitBreakerConfig(**values)


def _run_failures(breaker: CircuitBreaker, action: CountingAction, n: int) -> None:
    for _ in range(n):
        with pytest.raises(Boom):
            asyncio.run(breaker.execute(action))


class TestStateMachine:
    def test_three_failures_open_the_breaker(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        failing = CountingAction(fail=True)

        _run_failures(breaker, failing, 2)
        assert breaker.state == CircuitState.CLOSED

        _run_failures(breaker, failing, 1)
        assert breaker.state == CircuitState.OPEN
        assert breaker.next_attempt_time == clock.now + 60.0

    def test_open_breaker_rejects_without_invoking(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        _run_failures(breaker, CountingAction(fail=True), 3)

        action = CountingAction()
        clock.advance(59.0)
        with pytest.raises(CircuitOpenError):
            asyncio.run(breaker.execute(action))
        assert action.calls == 0
        assert breaker.state == CircuitState.OPEN

    def test_after_reset_timeout_next_call_is_half_open_and_runs(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        _run_failures(breaker, CountingAction(fail=True), 3)

        clock.advance(60.0)
        action = CountingAction()
        assert asyncio.run(breaker.execute(action)) == "ok"
        assert action.calls == 1
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.successes == 1

    def test_half_open_closes_after_success_threshold(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        _run_failures(breaker, CountingAction(fail=True), 3)
        clock.advance(61.0)

        action = CountingAction()
        asyncio.run(breaker.execute(action))
        asyncio.run(breaker.execute(action))

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failures == 0
        assert breaker.successes == 0

    def test_failure_in_half_open_reopens_and_restarts_timer(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        _run_failures(breaker, CountingAction(fail=True), 3)
        clock.advance(61.0)

        asyncio.run(breaker.execute(CountingAction()))
        _run_failures(breaker, CountingAction(fail=True), 1)

        assert breaker.state == CircuitState.OPEN
        assert breaker.successes == 0
        assert breaker.next_attempt_time == clock.now + 60.0

    def test_success_resets_consecutive_failure_count(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        failing = CountingAction(fail=True)

        _run_failures(breaker, failing, 2)
        asyncio.run(breaker.execute(CountingAction()))
        _run_failures(breaker, failing, 2)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failures == 2

    def test_timeout_counts_as_failure(self, clock) -> None:
        breaker = CircuitBreaker("slow", _config(failure_threshold=1, timeout=0.01), clock=clock)

        async def slow() -> str:
            await asyncio.sleep(1.0)
            return "late"

        with pytest.raises(CircuitTimeoutError):
            asyncio.run(breaker.execute(slow))
        assert breaker.state == CircuitState.OPEN

    def test_reset_closes_breaker(self, clock) -> None:
        breaker = CircuitBreaker("feed", _config(), clock=clock)
        _run_failures(breaker, CountingAction(fail=True), 3)

        breaker.reset()

        stats = breaker.stats()
        assert stats.state == CircuitState.CLOSED
        assert stats.failures == 0
        assert stats.next_attempt_time is None
        assert stats.to_dict()["state"] == "CLOSED"


class TestConfig:
    def test_defaults(self) -> None:
        config = CircuitBreakerConfig()
        assert (config.failure_threshold, config.success_threshold) == (5, 2)
        assert (config.timeout, config.reset_timeout) == (10.0, 60.0)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"failure_threshold": 0},
            {"success_threshold": 0},
            {"timeout": 0},
            {"reset_timeout": -1},
        ],
    )
    def test_invalid_values_rejected(self, overrides) -> None:
        with pytest.raises(ValueError):
            CircuitBreakerConfig(**overrides)


class TestRegistry:
    def test_get_or_create_caches_by_name(self) -> None:
        registry = CircuitBreakerRegistry()
        first = registry.get_or_create("a", _config())
        assert registry.get_or_create("a") is first
        assert registry.get("a") is first
        assert registry.get("b") is None

    def test_registries_are_isolated(self, clock) -> None:
        one = CircuitBreakerRegistry(clock=clock)
        two = CircuitBreakerRegistry(clock=clock)
        _run_failures(one.get_or_create("feed", _config()), CountingAction(fail=True), 3)

        assert one.get("feed").state == CircuitState.OPEN
        assert two.get_or_create("feed", _config()).state == CircuitState.CLOSED

    def test_one_failing_resource_does_not_affect_another(self, clock) -> None:
        registry = CircuitBreakerRegistry(clock=clock)
        _run_failures(registry.get_or_create("bad", _config()), CountingAction(fail=True), 3)

        good = CountingAction()
        assert asyncio.run(registry.get_or_create("good", _config()).execute(good)) == "ok"
        stats = registry.all_stats()
        assert stats["bad"].state == CircuitState.OPEN
        assert stats["good"].state == CircuitState.CLOSED

    def test_reset_all(self, clock) -> None:
        registry = CircuitBreakerRegistry(clock=clock)
        _run_failures(registry.get_or_create("bad", _config()), CountingAction(fail=True), 3)

        registry.reset_all()

        assert registry.get("bad").state == CircuitState.CLOSED

    def test_dispose_ends_lifecycle(self) -> None:
        registry = CircuitBreakerRegistry()
        registry.get_or_create("a")
        registry.dispose()

        assert registry.all_stats() == {}
        with pytest.raises(RuntimeError):
            registry.get_or_create("a")


class TestFallbacks:
    def test_primary_success_skips_fallbacks(self) -> None:
        registry = CircuitBreakerRegistry()
        primary = CountingAction(result="primary")
        fallback = CountingAction(result="fallback")

        result = asyncio.run(registry.execute_with_fallbacks("svc", primary, [fallback]))

        assert result == "primary"
        assert fallback.calls == 0

    def test_fallbacks_tried_in_order_with_own_breakers(self) -> None:
        registry = CircuitBreakerRegistry()
        primary = CountingAction(fail=True)
        first = CountingAction(fail=True)
        second = CountingAction(result="second")

        result = asyncio.run(registry.execute_with_fallbacks("svc", primary, [first, second]))

        assert result == "second"
        assert (primary.calls, first.calls, second.calls) == (1, 1, 1)
        assert set(registry.all_stats()) == {"svc", "svc-fallback-0", "svc-fallback-1"}

    def test_last_error_raised_when_chain_exhausted(self) -> None:
        registry = CircuitBreakerRegistry()

        async def last() -> str:
            raise KeyError("last")

        with pytest.raises(KeyError):
            asyncio.run(
                registry.execute_with_fallbacks("svc", CountingAction(fail=True), [last])
            )
