"""
Schemas package: all data models for the Budbringer pipeline.

Models are organized in submodules:
  - base.py: Common enums (SourceType, SourceTier, CircuitState)
  - news.py: NewsItem, ContentSource, SourceFilterConfig, CachedFeed,
             SourceReliability, ArticleSignature
  - pipeline.py: NewsIngestionState, PipelineResult
"""

# base.py: enums
from budbringer.schemas.base import SourceType, SourceTier, CircuitState

# news.py: item, source and bookkeeping models
from budbringer.schemas.news import (
    NewsItem, SourceFilterConfig, ContentSource, CachedFeed,
    SourceReliability, ArticleSignature,
)

# pipeline.py: run state
from budbringer.schemas.pipeline import NewsIngestionState, PipelineResult

__all__ = [
    # base
    "SourceType", "SourceTier", "CircuitState",
    # news
    "NewsItem", "SourceFilterConfig", "ContentSource", "CachedFeed",
    "SourceReliability", "ArticleSignature",
    # pipeline
    "NewsIngestionState", "PipelineResult",
]
