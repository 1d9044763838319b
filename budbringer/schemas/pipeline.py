"""
Pipeline run models.

NewsIngestionState tracks one pass over a pipeline's sources;
PipelineResult is what a full run (fetch → store → digest) reports.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List
from pydantic import BaseModel, Field

from .news import NewsItem


class NewsIngestionState(BaseModel):
    """State for the ingestion phase of one run."""
    items: List[NewsItem] = Field(default_factory=list)
    sources_attempted: int = 0
    sources_skipped: int = 0
    articles_fetched: int = 0
    articles_after_dedup: int = 0
    source_health: Dict[str, bool] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class PipelineResult(BaseModel):
    """Result of running the full pipeline."""
    pipeline_id: int
    status: str = "success"  # success | partial | empty
    articles: int = 0
    stored: int = 0
    errors: List[str] = Field(default_factory=list)
    digest: Any = None
    run_time_seconds: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
