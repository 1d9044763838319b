# Tools module
from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
)
from .feed_cache import FeedCache
from .rss_fetcher import RSSFetcher, parse_feed
from .robots import RobotsChecker, RobotsVerdict

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitBreakerStats",
    # Feeds
    "FeedCache",
    "RSSFetcher",
    "parse_feed",
    # robots.txt
    "RobotsChecker",
    "RobotsVerdict",
]
