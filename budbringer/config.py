"""
Configuration management for the Budbringer news ingestion pipeline.

Settings are read from environment variables (or a local .env file) and
cached for the lifetime of the process. DEFAULT_SOURCES holds the stock
feed list used when seeding a fresh database.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    database_url: str = Field(default="sqlite:///./data/budbringer.db", alias="DATABASE_URL")

    # HTTP
    user_agent: str = Field(
        default="Budbringer-Bot/1.0 (+https://budbringer.no)",
        alias="USER_AGENT",
    )
    http_timeout_seconds: float = Field(default=10.0, alias="HTTP_TIMEOUT_SECONDS")

    # ── Feed cache ──
    feed_cache_ttl_minutes: int = Field(default=30, alias="FEED_CACHE_TTL_MINUTES")

    # ── Per-feed circuit breaker ──
    # Individual feeds fail often and recover slowly, so these are tighter
    # than the generic breaker defaults.
    feed_breaker_failure_threshold: int = Field(default=3, alias="FEED_BREAKER_FAILURE_THRESHOLD")
    feed_breaker_success_threshold: int = Field(default=2, alias="FEED_BREAKER_SUCCESS_THRESHOLD")
    feed_breaker_timeout_seconds: float = Field(default=15.0, alias="FEED_BREAKER_TIMEOUT_SECONDS")
    feed_breaker_reset_seconds: float = Field(default=300.0, alias="FEED_BREAKER_RESET_SECONDS")

    # Politeness delay between sources in one run
    source_delay_seconds: float = Field(default=0.5, alias="SOURCE_DELAY_SECONDS")

    # ── Deduplication: MinHash LSH over character shingles ──
    # 0.8 = near-identical stories (reworded headline, same body)
    # 20 bands x 5 rows = 100 hashes, S-curve midpoint around 0.55
    dedup_similarity_threshold: float = Field(default=0.8, alias="DEDUP_SIMILARITY_THRESHOLD")
    dedup_shingle_size: int = Field(default=3, alias="DEDUP_SHINGLE_SIZE")
    dedup_num_hashes: int = Field(default=100, alias="DEDUP_NUM_HASHES")
    dedup_num_bands: int = Field(default=20, alias="DEDUP_NUM_BANDS")
    dedup_rows_per_band: int = Field(default=5, alias="DEDUP_ROWS_PER_BAND")

    # ── Filtering ──
    # 0.0 disables reliability filtering in the orchestrator
    min_source_reliability: float = Field(default=0.0, alias="MIN_SOURCE_RELIABILITY")

    # ── robots.txt ──
    respect_robots_txt: bool = Field(default=False, alias="RESPECT_ROBOTS_TXT")
    robots_cache_ttl_seconds: int = Field(default=3600, alias="ROBOTS_CACHE_TTL_SECONDS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# ══════════════════════════════════════════════════════════════════════════════
# DEFAULT NEWS SOURCES
# Norwegian outlets first, then international AI coverage. Priority is the
# position within a pipeline (higher = fetched earlier, wins dedup ties).
# ══════════════════════════════════════════════════════════════════════════════

_NO_AI_KEYWORDS = [
    "KI", "kunstig intelligens", "maskinlæring", "AI", "OpenAI", "ChatGPT",
]
_EN_AI_KEYWORDS = [
    "AI", "artificial intelligence", "machine learning", "LLM", "OpenAI",
    "ChatGPT", "GPT", "Claude", "Gemini",
]

DEFAULT_SOURCES = [
    {
        "name": "NRK Viten",
        "type": "rss",
        "base_url": "https://www.nrk.no/viten/toppsaker.rss",
        "category": "norwegian",
        "priority": 100,
        "config": {"filter_keywords": _NO_AI_KEYWORDS, "max_age_days": 7},
    },
    {
        "name": "NRK Nyheter",
        "type": "rss",
        "base_url": "https://www.nrk.no/toppsaker.rss",
        "category": "norwegian",
        "priority": 90,
        "config": {"filter_keywords": _NO_AI_KEYWORDS, "max_age_days": 3},
    },
    {
        "name": "ITavisen",
        "type": "rss",
        "base_url": "https://itavisen.no/feed/",
        "category": "norwegian",
        "priority": 85,
        "config": {"filter_keywords": _NO_AI_KEYWORDS, "max_age_days": 7},
    },
    {
        "name": "Teknisk Ukeblad",
        "type": "rss",
        "base_url": "https://www.tu.no/rss",
        "category": "norwegian",
        "priority": 80,
        "config": {"filter_keywords": _NO_AI_KEYWORDS, "max_age_days": 7},
    },
    {
        "name": "TechCrunch AI",
        "type": "rss",
        "base_url": "https://techcrunch.com/category/artificial-intelligence/feed/",
        "category": "international",
        "priority": 70,
        "config": {"filter_keywords": _EN_AI_KEYWORDS, "max_age_days": 3},
    },
    {
        "name": "MIT Technology Review AI",
        "type": "rss",
        "base_url": "https://www.technologyreview.com/topic/artificial-intelligence/feed",
        "category": "international",
        "priority": 65,
        "config": {"filter_keywords": _EN_AI_KEYWORDS, "max_age_days": 7},
    },
    {
        "name": "The Verge AI",
        "type": "rss",
        "base_url": "https://www.theverge.com/rss/ai-artificial-intelligence/index.xml",
        "category": "international",
        "priority": 60,
        "config": {"filter_keywords": _EN_AI_KEYWORDS, "max_age_days": 3},
    },
    {
        "name": "VentureBeat AI",
        "type": "rss",
        "base_url": "https://venturebeat.com/category/ai/feed/",
        "category": "international",
        "priority": 55,
        "config": {"filter_keywords": _EN_AI_KEYWORDS, "max_age_days": 3},
    },
    {
        "name": "OpenAI Blog",
        "type": "rss",
        "base_url": "https://openai.com/blog/rss.xml",
        "category": "international",
        "priority": 50,
        # Every post is on-topic
        "config": {"filter_keywords": [], "max_age_days": 14},
    },
]
