"""
Common enums used across the pipeline.

These define the vocabulary of the system: source types, reputation tiers
and circuit breaker states.
"""

from enum import Enum


class SourceType(str, Enum):
    """Content source types. Only RSS is fetched today."""
    RSS = "rss"
    SCRAPING = "scraping"
    API = "api"


class SourceTier(str, Enum):
    """Static reputation tier of a news outlet."""
    TIER_1 = "tier1"       # Major national / leading tech publications
    TIER_2 = "tier2"       # Academic and government (.edu / .gov)
    TIER_3 = "tier3"
    TIER_4 = "tier4"
    UNKNOWN = "unknown"


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"
