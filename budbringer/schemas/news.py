"""
News item and source data models.

These models represent the raw material of the pipeline: normalized items
parsed from RSS feeds, the sources they come from, and the per-source
bookkeeping (cache entries, reliability stats) kept between runs.

Hierarchy: ContentSource → NewsItem → ArticleSignature (dedup only)
"""

from datetime import datetime, timezone
from typing import Any, List, Optional
import hashlib

from pydantic import BaseModel, Field, field_validator

from .base import SourceType


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class NewsItem(BaseModel):
    """
    Normalized article.

    Created by the fetcher from a raw feed entry. The orchestrator stamps
    `source` and `category`; after that the item is not mutated.
    `url` is the natural identity key.
    """
    title: str = Field(min_length=1)
    description: Optional[str] = None
    url: str = Field(min_length=1)
    published_at: datetime
    source: str = "Unknown"
    content: Optional[str] = None
    category: Optional[str] = None

    @field_validator('published_at', mode='after')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def signature_text(self) -> str:
        """Text used for shingling: title, description and content."""
        return f"{self.title} {self.description or ''} {self.content or ''}"


class SourceFilterConfig(BaseModel):
    """
    Per-source relevance filter.

    Unknown keys are rejected here so a typo in stored config surfaces at
    load time instead of silently disabling a filter.
    """
    filter_keywords: List[str] = Field(default_factory=list)
    max_age_days: int = Field(default=7, ge=1, le=365)

    @field_validator('filter_keywords', mode='before')
    @classmethod
    def drop_blank_keywords(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [k.strip() for k in v if isinstance(k, str) and k.strip()]

    class Config:
        extra = "forbid"


class ContentSource(BaseModel):
    """Configuration for one feed, as linked to a pipeline."""
    id: int
    name: str
    type: SourceType = SourceType.RSS
    base_url: str
    config: SourceFilterConfig = Field(default_factory=SourceFilterConfig)
    category: Optional[str] = None
    priority: int = 0
    active: bool = True

    class Config:
        use_enum_values = True


class CachedFeed(BaseModel):
    """A cached feed fetch."""
    feed_url: str
    items: List[NewsItem] = Field(default_factory=list)
    fetched_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SourceReliability(BaseModel):
    """Rolling per-source fetch statistics and weighted score."""
    source_id: int
    source_name: str
    reliability_score: float = Field(ge=0.0, le=1.0, default=0.5)
    historical_accuracy: Optional[float] = None
    fetch_success_rate: Optional[float] = None
    total_fetches: int = 0
    successful_fetches: int = 0
    last_fetch_success: Optional[bool] = None
    last_fetch_at: Optional[datetime] = None


class ArticleSignature(BaseModel):
    """
    MinHash sketch of one item. Built fresh on every dedup pass and never
    persisted.
    """
    item: NewsItem
    signature: List[int]
    content_hash: str
    minhash: Any = Field(default=None, exclude=True, repr=False)

    @staticmethod
    def hash_text(normalized_text: str) -> str:
        return hashlib.md5(normalized_text.encode("utf-8")).hexdigest()

    class Config:
        arbitrary_types_allowed = True
