"""
News orchestrator: turns a pipeline's source list into one deduplicated,
newest-first article set and hands it to the digest step.

Per run:
  1. Load the pipeline's active source links (highest priority first)
  2. For each RSS source: fetch → keyword/age filter → stamp source/category
     → report the outcome to the reliability tracker
     (sources are fetched one at a time with a politeness delay, raised to
     the host's robots.txt Crawl-delay when robots.txt is respected)
  3. Deduplicate the accumulated set. Input order is source priority, then
     feed order, so the highest-priority outlet keeps a shared story.
  4. Optionally drop items from sources below the reliability floor
  5. Sort by published_at, newest first

A failing source is logged and skipped; only a broken pipeline
configuration fails the run. Zero articles is a valid result.

The orchestrator owns the per-run resources (breaker registry, HTTP client)
and releases them on exit:

    async with NewsOrchestrator(database) as orchestrator:
        items = await orchestrator.fetch_news_from_sources(pipeline_id=1)
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from ..config import Settings, get_settings
from ..database import Database, get_database
from ..exceptions import FeedUnavailableError
from ..news.dedup import ArticleDeduplicator
from ..news.filter import filter_relevant_news
from ..news.reliability import SourceReliabilityTracker, filter_by_minimum_reliability
from ..schemas import ContentSource, NewsIngestionState, NewsItem, PipelineResult, SourceType
from ..tools.circuit_breaker import CircuitBreakerRegistry
from ..tools.feed_cache import FeedCache
from ..tools.robots import RobotsChecker
from ..tools.rss_fetcher import RSSFetcher

logger = logging.getLogger(__name__)

Summarizer = Callable[[List[NewsItem]], Awaitable[Any]]


class NewsOrchestrator:
    """Wires cache, breakers, fetcher, filter, dedup and reliability together."""

    def __init__(
        self,
        database: Optional[Database] = None,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.db = database or get_database()
        self._sleep = sleep
        self._client = client
        self._owns_client = client is None

        self.breakers: Optional[CircuitBreakerRegistry] = None
        self.cache: Optional[FeedCache] = None
        self.fetcher: Optional[RSSFetcher] = None
        self.robots: Optional[RobotsChecker] = None
        self.tracker = SourceReliabilityTracker(self.db)
        self.deduplicator = ArticleDeduplicator(
            similarity_threshold=self.settings.dedup_similarity_threshold,
            shingle_size=self.settings.dedup_shingle_size,
            num_hashes=self.settings.dedup_num_hashes,
            num_bands=self.settings.dedup_num_bands,
            rows_per_band=self.settings.dedup_rows_per_band,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def __aenter__(self) -> "NewsOrchestrator":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def open(self):
        if self.fetcher is not None:
            return
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                follow_redirects=True,
            )
        self.breakers = CircuitBreakerRegistry()
        self.cache = FeedCache(self.db, default_ttl_minutes=self.settings.feed_cache_ttl_minutes)
        self.fetcher = RSSFetcher(
            cache=self.cache,
            breakers=self.breakers,
            client=self._client,
            settings=self.settings,
        )
        if self.settings.respect_robots_txt:
            self.robots = RobotsChecker(
                client=self._client,
                ttl_seconds=self.settings.robots_cache_ttl_seconds,
                user_agent=self.settings.user_agent,
            )

    async def close(self):
        if self.breakers is not None:
            self.breakers.dispose()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        self.breakers = None
        self.cache = None
        self.fetcher = None
        self.robots = None

    # ── Ingestion ─────────────────────────────────────────────────────

    async def fetch_news_from_sources(self, pipeline_id: int) -> List[NewsItem]:
        """Deduplicated items from every active source, newest first.

        Raises ConfigurationError if the pipeline's sources cannot be loaded.
        """
        state = await self.ingest(pipeline_id)
        return state.items

    async def ingest(self, pipeline_id: int) -> NewsIngestionState:
        """Like fetch_news_from_sources, but also reports per-source health and errors."""
        if self.fetcher is None:
            raise RuntimeError("NewsOrchestrator is not open; use 'async with'")

        state = NewsIngestionState()
        sources = self.db.get_pipeline_sources(pipeline_id)
        if not sources:
            logger.warning(f"No active sources found for pipeline {pipeline_id}")
            return state

        logger.info(f"Found {len(sources)} active sources for pipeline {pipeline_id}")

        collected: List[NewsItem] = []
        fetched_any = False
        for source in sources:
            if not source.active:
                continue
            if source.type != SourceType.RSS:
                logger.warning(f"Source type '{source.type}' not implemented yet for {source.name}")
                state.sources_skipped += 1
                continue

            delay = self.settings.source_delay_seconds
            if self.robots is not None:
                verdict = await self.robots.is_allowed(source.base_url)
                if not verdict.allowed:
                    logger.warning(f"[{source.name}] robots.txt disallows {source.base_url}, skipping")
                    state.sources_skipped += 1
                    continue
                delay = max(delay, verdict.crawl_delay)

            if fetched_any:
                await self._sleep(delay)
            fetched_any = True

            state.sources_attempted += 1
            try:
                items = await self._fetch_source(source)
            except Exception as e:
                self._record_failure(state, source, e)
                continue

            state.source_health[source.name] = True
            self.tracker.update_after_fetch(source.id, True)
            collected.extend(items)

        state.articles_fetched = len(collected)
        logger.info(f"Total articles collected: {len(collected)}")
        if state.errors:
            logger.warning(f"Encountered {len(state.errors)} errors during news fetching: {state.errors}")

        unique = self.deduplicator.deduplicate(collected)

        if self.settings.min_source_reliability > 0:
            scores = self.tracker.get_all_reliabilities()
            unique = filter_by_minimum_reliability(unique, scores, self.settings.min_source_reliability)

        state.items = sorted(unique, key=lambda item: item.published_at, reverse=True)
        state.articles_after_dedup = len(state.items)
        return state

    async def _fetch_source(self, source: ContentSource) -> List[NewsItem]:
        logger.info(f"Fetching from source: {source.name} ({source.type})")
        items = await self.fetcher.fetch_feed(source.base_url)
        items = filter_relevant_news(items, source.config)
        logger.info(f"Found {len(items)} relevant articles from {source.name}")
        return [
            item.model_copy(update={"source": source.name, "category": source.category})
            for item in items
        ]

    def _record_failure(self, state: NewsIngestionState, source: ContentSource, error: Exception):
        if isinstance(error, FeedUnavailableError):
            msg = f"Skipped {source.name}: circuit open"
        else:
            msg = f"Failed to fetch from {source.name}: {error}"
        logger.error(msg)
        state.errors.append(msg)
        state.source_health[source.name] = False
        self.tracker.update_after_fetch(source.id, False)

    # ── Storage & digest hand-off ─────────────────────────────────────

    def store_content_items(self, pipeline_id: int, items: List[NewsItem]) -> int:
        """Persist items, ignoring URLs already stored. Returns rows added."""
        stored = self.db.store_content_items(pipeline_id, items)
        logger.info(f"Stored {stored} new items ({len(items) - stored} already known)")
        return stored

    async def run_pipeline(
        self,
        pipeline_id: int,
        summarize: Optional[Summarizer] = None,
        store: bool = True,
    ) -> PipelineResult:
        """Fetch, store and hand the ordered items to `summarize`.

        `summarize` receives the final list even when it is empty, so it can
        produce a "no news today" digest.
        """
        start = time.time()
        state = await self.ingest(pipeline_id)

        stored = self.store_content_items(pipeline_id, state.items) if store else 0
        digest = await summarize(state.items) if summarize is not None else None

        if not state.items:
            status = "empty"
        elif state.errors:
            status = "partial"
        else:
            status = "success"

        result = PipelineResult(
            pipeline_id=pipeline_id,
            status=status,
            articles=len(state.items),
            stored=stored,
            errors=state.errors,
            digest=digest,
            run_time_seconds=time.time() - start,
        )
        logger.info(
            f"Pipeline {pipeline_id} finished: {result.status}, {result.articles} articles, "
            f"{len(result.errors)} errors, {result.run_time_seconds:.1f}s"
        )
        return result
