"""
Budbringer: RSS news ingestion with near-duplicate removal.

Layers:
- tools: circuit breaker, feed cache, RSS fetcher, robots.txt checker
- news: relevance filter, MinHash LSH deduplication, source reliability
- agents: orchestrator wiring a pipeline's sources into one article set
"""

__version__ = "1.0.0"
