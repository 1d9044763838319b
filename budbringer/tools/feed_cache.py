"""
Feed cache: parsed feed items stored per feed URL with a TTL.

Caching only saves network round-trips. Any store problem is logged and
reported as a miss, so a broken cache never breaks a run.

Usage:
    cache = FeedCache(database)
    items = cache.get(url)          # None on miss / expiry / store error
    cache.set(url, items, ttl_minutes=30)
    cache.clear_expired()           # periodic sweep
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..database import Database, FeedCacheModel, from_db_time, to_db_time
from ..exceptions import CacheError
from ..schemas import CachedFeed, NewsItem

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedCache:
    """TTL cache of parsed feeds, backed by the feed_cache table."""

    def __init__(
        self,
        database: Database,
        clock: Callable[[], datetime] = _utcnow,
        default_ttl_minutes: int = DEFAULT_TTL_MINUTES,
    ):
        self.db = database
        self._clock = clock
        self.default_ttl_minutes = default_ttl_minutes

    def get(self, feed_url: str) -> Optional[List[NewsItem]]:
        entry = self.get_entry(feed_url)
        return entry.items if entry else None

    def get_entry(self, feed_url: str) -> Optional[CachedFeed]:
        """Cached entry if present and fresh. Expired entries are deleted."""
        try:
            return self._read(feed_url)
        except CacheError as e:
            logger.warning(f"[CACHE] Read failed for {feed_url}, treating as miss: {e}")
            return None

    def _read(self, feed_url: str) -> Optional[CachedFeed]:
        now = self._clock()
        try:
            with self.db.get_session() as session:
                row = session.get(FeedCacheModel, feed_url)
                if row is None:
                    logger.debug(f"[CACHE] Miss: {feed_url}")
                    return None

                expires_at = from_db_time(row.expires_at)
                if now > expires_at:
                    session.delete(row)
                    logger.debug(f"[CACHE] Expired: {feed_url}")
                    return None

                items = [NewsItem.model_validate(d) for d in json.loads(row.feed_data)]
                fetched_at = from_db_time(row.fetched_at)
        except SQLAlchemyError as e:
            raise CacheError(str(e)) from e
        except (ValueError, TypeError, ValidationError) as e:
            raise CacheError(f"Corrupt cache payload: {e}") from e

        logger.info(f"[CACHE] Hit: {feed_url} ({len(items)} items)")
        return CachedFeed(feed_url=feed_url, items=items, fetched_at=fetched_at, expires_at=expires_at)

    def set(self, feed_url: str, items: List[NewsItem], ttl_minutes: Optional[int] = None):
        """Upsert the entry for `feed_url` with fetched_at = now."""
        ttl = ttl_minutes if ttl_minutes is not None else self.default_ttl_minutes
        now = self._clock()
        payload = json.dumps([item.model_dump(mode="json") for item in items])
        try:
            with self.db.get_session() as session:
                session.merge(FeedCacheModel(
                    feed_url=feed_url,
                    feed_data=payload,
                    fetched_at=to_db_time(now),
                    expires_at=to_db_time(now + timedelta(minutes=ttl)),
                ))
        except SQLAlchemyError as e:
            logger.warning(f"[CACHE] Write failed for {feed_url}: {e}")
            return
        logger.debug(f"[CACHE] Stored {len(items)} items for {feed_url} (ttl={ttl}m)")

    def clear_expired(self) -> int:
        """Delete entries whose expires_at is in the past. Returns rows removed."""
        cutoff = to_db_time(self._clock())
        try:
            with self.db.get_session() as session:
                removed = (
                    session.query(FeedCacheModel)
                    .filter(FeedCacheModel.expires_at < cutoff)
                    .delete(synchronize_session=False)
                )
        except SQLAlchemyError as e:
            logger.warning(f"[CACHE] Sweep failed: {e}")
            return 0
        if removed:
            logger.info(f"[CACHE] Swept {removed} expired entries")
        return removed

    def clear_all(self) -> int:
        try:
            with self.db.get_session() as session:
                removed = session.query(FeedCacheModel).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            logger.warning(f"[CACHE] Clear failed: {e}")
            return 0
        logger.info(f"[CACHE] Cleared {removed} entries")
        return removed
