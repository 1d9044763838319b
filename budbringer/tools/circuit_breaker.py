"""
Circuit breaker for unreliable async calls (one breaker per feed URL).

When a feed starts timing out, the next runs should skip it quickly instead
of waiting 15s for each attempt. A breaker trips after N consecutive
failures, rejects calls for a cooldown period, then lets trial calls through
(HALF_OPEN). Enough trial successes close it again; any trial failure
re-opens it and restarts the cooldown.

    CLOSED --N failures--> OPEN --reset_timeout--> HALF_OPEN --M successes--> CLOSED
                             ^                         |
                             +-------- failure --------+

Breakers live in a CircuitBreakerRegistry which the orchestrator creates,
passes to the fetcher and disposes at the end of the run. There is no
module-level registry.

Usage:
    registry = CircuitBreakerRegistry()
    breaker = registry.get_or_create("rss-feed-https://...", CircuitBreakerConfig(failure_threshold=3))
    items = await breaker.execute(lambda: fetch(url))
"""

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from ..exceptions import CircuitOpenError, CircuitTimeoutError
from ..schemas import CircuitState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Breaker thresholds. Durations are in seconds."""
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout: float = 10.0
    reset_timeout: float = 60.0

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {self.failure_threshold}")
        if self.success_threshold < 1:
            raise ValueError(f"success_threshold must be >= 1, got {self.success_threshold}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.reset_timeout <= 0:
            raise ValueError(f"reset_timeout must be > 0, got {self.reset_timeout}")


@dataclass
class CircuitBreakerStats:
    name: str
    state: CircuitState
    failures: int
    successes: int
    last_failure_time: Optional[float]   # clock units
    next_attempt_time: Optional[float]   # clock units

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class CircuitBreaker:
    """Failure-isolating wrapper around one named resource."""

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Clock = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.successes = 0
        self.last_failure_time: Optional[float] = None
        self.next_attempt_time: Optional[float] = None

    async def execute(self, action: Callable[[], Awaitable[T]]) -> T:
        """Run `action` under the breaker policy.

        Raises CircuitOpenError without calling `action` while the breaker is
        open, CircuitTimeoutError if `action` exceeds the timeout, and
        re-raises whatever `action` raised otherwise. Timeouts and errors
        both count as failures.
        """
        if self.state == CircuitState.OPEN:
            if self.next_attempt_time is not None and self._clock() < self.next_attempt_time:
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is OPEN; retry after cooldown",
                    self.name,
                )
            self._transition(CircuitState.HALF_OPEN)
            self.successes = 0

        try:
            result = await asyncio.wait_for(action(), timeout=self.config.timeout)
        except asyncio.TimeoutError as e:
            self._on_failure()
            raise CircuitTimeoutError(
                f"Circuit breaker '{self.name}': call timed out after {self.config.timeout}s",
                self.name,
            ) from e
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def _on_success(self):
        self.failures = 0
        if self.state == CircuitState.HALF_OPEN:
            self.successes += 1
            if self.successes >= self.config.success_threshold:
                self._transition(CircuitState.CLOSED)
                self.successes = 0
                self.next_attempt_time = None

    def _on_failure(self):
        now = self._clock()
        self.failures += 1
        self.last_failure_time = now

        if self.state == CircuitState.HALF_OPEN or self.failures >= self.config.failure_threshold:
            self.next_attempt_time = now + self.config.reset_timeout
            self.successes = 0
            self._transition(CircuitState.OPEN)

    def _transition(self, new_state: CircuitState):
        if new_state == self.state:
            return
        old_state = self.state
        self.state = new_state
        if new_state == CircuitState.OPEN:
            logger.warning(
                f"[BREAKER] {self.name}: {old_state.value} -> OPEN "
                f"after {self.failures} failure(s), cooling down {self.config.reset_timeout:.0f}s"
            )
        else:
            logger.info(f"[BREAKER] {self.name}: {old_state.value} -> {new_state.value}")

    def stats(self) -> CircuitBreakerStats:
        return CircuitBreakerStats(
            name=self.name,
            state=self.state,
            failures=self.failures,
            successes=self.successes,
            last_failure_time=self.last_failure_time,
            next_attempt_time=self.next_attempt_time,
        )

    def reset(self):
        """Force the breaker closed and clear its counters."""
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.successes = 0
        self.last_failure_time = None
        self.next_attempt_time = None


class CircuitBreakerRegistry:
    """
    Named breakers, created on first use.

    Owned by whoever runs the pipeline (create -> use -> dispose). Two
    registries never share state, so concurrent runs and tests are isolated.
    """

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._disposed = False

    def get_or_create(self, name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
        """Return the breaker for `name`. `config` only applies on creation."""
        if self._disposed:
            raise RuntimeError("CircuitBreakerRegistry has been disposed")
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(name, config, clock=self._clock)
            self._breakers[name] = breaker
        return breaker

    def get(self, name: str) -> Optional[CircuitBreaker]:
        return self._breakers.get(name)

    def all_stats(self) -> Dict[str, CircuitBreakerStats]:
        return {name: b.stats() for name, b in self._breakers.items()}

    def reset_all(self):
        for breaker in self._breakers.values():
            breaker.reset()

    def dispose(self):
        self._breakers.clear()
        self._disposed = True

    async def execute_with_fallbacks(
        self,
        name: str,
        primary: Callable[[], Awaitable[T]],
        fallbacks: Sequence[Callable[[], Awaitable[T]]] = (),
        config: Optional[CircuitBreakerConfig] = None,
    ) -> T:
        """Try `primary`, then each fallback, each behind its own breaker.

        Fallback i runs through breaker "{name}-fallback-{i}". If every
        attempt fails the last error is raised.
        """
        attempts: List[tuple] = [(name, primary)]
        attempts += [(f"{name}-fallback-{i}", fb) for i, fb in enumerate(fallbacks)]

        last_error: Optional[BaseException] = None
        for breaker_name, action in attempts:
            breaker = self.get_or_create(breaker_name, config)
            try:
                return await breaker.execute(action)
            except Exception as e:
                logger.warning(f"[BREAKER] {breaker_name} failed: {e}")
                last_error = e

        raise last_error
