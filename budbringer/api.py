"""
HTTP trigger and status endpoints for the ingestion pipeline.

Meant for a scheduler (cron, Cloud Scheduler, GitHub Actions) to kick off
the daily run and for quick health checks. There is no admin surface here.
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException

from .agents.orchestrator import NewsOrchestrator
from .database import get_database
from .exceptions import ConfigurationError
from .news.reliability import SourceReliabilityTracker
from .schemas import PipelineResult
from .tools.feed_cache import FeedCache

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Budbringer News Ingestion",
    description="RSS ingestion, near-duplicate removal and source reliability scoring",
    version="1.0.0",
)

# Pipelines currently running in this process
_running: set = set()


@app.get("/health")
async def health_check():
    db = get_database()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sources": len(db.list_content_sources()),
        "running": sorted(_running),
    }


@app.get("/sources")
async def list_sources():
    """Sources with their current reliability stats."""
    db = get_database()
    return {"sources": db.list_content_sources()}


@app.get("/sources/reliability")
async def source_reliability():
    tracker = SourceReliabilityTracker(get_database())
    return tracker.get_all_reliabilities()


@app.post("/pipelines/{pipeline_id}/run", response_model=PipelineResult)
async def run_pipeline(pipeline_id: int, store: bool = True):
    """Run ingestion for one pipeline. The digest step is not invoked here."""
    if pipeline_id in _running:
        raise HTTPException(status_code=409, detail=f"Pipeline {pipeline_id} is already running")

    _running.add(pipeline_id)
    try:
        async with NewsOrchestrator(get_database()) as orchestrator:
            return await orchestrator.run_pipeline(pipeline_id, store=store)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    finally:
        _running.discard(pipeline_id)


@app.post("/cache/sweep")
async def sweep_cache():
    removed = FeedCache(get_database()).clear_expired()
    return {"removed": removed}
