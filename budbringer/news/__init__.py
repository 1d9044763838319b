"""
News processing: everything between raw feed items and the digest.

Modules:
- filter: per-source keyword/age relevance filter
- dedup: exact + MinHash LSH near-duplicate removal
- reliability: weighted per-source reliability scores
"""

from budbringer.news.filter import filter_relevant_news
from budbringer.news.dedup import (
    ArticleDeduplicator, build_shingles, deduplicate_articles, remove_duplicates_by_url,
)
from budbringer.news.reliability import (
    SourceReliabilityTracker, calculate_base_reliability_score, classify_tier,
    filter_by_minimum_reliability, sort_by_reliability,
)

__all__ = [
    "filter_relevant_news",
    "ArticleDeduplicator", "build_shingles", "deduplicate_articles", "remove_duplicates_by_url",
    "SourceReliabilityTracker", "calculate_base_reliability_score", "classify_tier",
    "filter_by_minimum_reliability", "sort_by_reliability",
]
