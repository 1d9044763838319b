"""Error taxonomy for the news ingestion pipeline."""


class BudbringerError(Exception):
    """Base class for all pipeline errors."""


# ── Fetching ─────────────────────────────────────────────────────────────────

class FetchError(BudbringerError):
    """Raised when a feed cannot be fetched or parsed."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class TransientFetchError(FetchError):
    """Network failure, timeout or non-2xx response."""


class FeedParseError(FetchError):
    """Raised when the feed body is not parseable RSS/Atom."""


class FeedUnavailableError(FetchError):
    """The feed's circuit breaker is open; the request was never sent."""


# ── Circuit breaker ──────────────────────────────────────────────────────────

class CircuitBreakerError(BudbringerError):
    """Base class for breaker-originated errors."""

    def __init__(self, message: str, name: str):
        super().__init__(message)
        self.name = name


class CircuitOpenError(CircuitBreakerError):
    """Call rejected without invoking the action."""


class CircuitTimeoutError(CircuitBreakerError):
    """The wrapped action did not finish within the breaker timeout."""


# ── Configuration / storage ──────────────────────────────────────────────────

class ConfigurationError(BudbringerError):
    """Pipeline or source configuration is missing or invalid."""


class CacheError(BudbringerError):
    """Feed cache store failure. Never escapes the cache."""
