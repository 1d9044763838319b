"""
RSS fetcher: downloads one feed URL and normalizes its entries to NewsItem.

Flow for fetch_feed(url):
  1. Feed cache hit → return cached items
  2. Otherwise HTTP GET + parse, wrapped in the breaker "rss-feed-{url}"
     (3 failures → open for 5 min, 15s per attempt)
  3. Store the result in the cache (30 min TTL) and return it

Failures are raised as FetchError subclasses and never cached. Reliability
bookkeeping is the caller's job; the fetcher has no opinion about sources.
"""

import html
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import feedparser
import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..exceptions import (
    CircuitOpenError, CircuitTimeoutError, FeedParseError,
    FeedUnavailableError, TransientFetchError,
)
from ..schemas import NewsItem
from .circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry
from .feed_cache import FeedCache

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r'<[^>]+>')
_WS_RE = re.compile(r'\s+')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_text(value: Optional[str]) -> str:
    """Strip HTML tags, decode entities (&amp; &nbsp; ...) and collapse whitespace."""
    if not value:
        return ""
    text = _TAG_RE.sub(' ', value)
    text = html.unescape(text)
    return _WS_RE.sub(' ', text).strip()


def _entry_datetime(entry: Dict[str, Any]) -> datetime:
    """Published date, then updated date, then now. feedparser gives UTC struct_times."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return _utcnow()


def _entry_content(entry: Dict[str, Any]) -> Optional[str]:
    """Full body from content:encoded / atom:content, if the feed carries one."""
    content = entry.get("content")
    if content:
        value = content[0].get("value")
        if value:
            return value
    return None


def parse_entry(entry: Dict[str, Any], feed_title: str) -> Optional[NewsItem]:
    """Map one feedparser entry to a NewsItem. Returns None if it has no URL."""
    url = (entry.get("link") or entry.get("id") or "").strip()
    if not url:
        return None

    title = _clean_text(entry.get("title")) or "No Title"
    description = _clean_text(entry.get("summary") or entry.get("description")) or None

    return NewsItem(
        title=title,
        description=description,
        url=url,
        published_at=_entry_datetime(entry),
        source=feed_title,
        content=_entry_content(entry),
    )


def parse_feed(
    body: Union[str, bytes],
    feed_url: str = "",
    content_type: Optional[str] = None,
) -> List[NewsItem]:
    """Parse an RSS/Atom document.

    Pass raw bytes plus the response Content-Type so feedparser can pick the
    charset from the header or the XML prolog (many Norwegian feeds are
    ISO-8859-1).

    Raises FeedParseError if the body is not a feed at all. Feedparser is
    lenient: a bozo feed that still yields entries is accepted.
    """
    headers = {"content-type": content_type} if content_type else None
    parsed = feedparser.parse(body, response_headers=headers)

    if not parsed.entries and (parsed.bozo or not parsed.get("version")):
        reason = parsed.get("bozo_exception") or "no RSS/Atom content"
        raise FeedParseError(f"Could not parse feed {feed_url}: {reason}", feed_url)

    feed_title = _clean_text(parsed.feed.get("title")) or "Unknown"

    items: List[NewsItem] = []
    skipped = 0
    for entry in parsed.entries:
        try:
            item = parse_entry(entry, feed_title)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Failed to parse entry in {feed_url}: {e}")
            item = None
        if item is None:
            skipped += 1
            continue
        items.append(item)

    if skipped:
        logger.debug(f"[RSS] {feed_url}: skipped {skipped} entries without a usable URL")
    return items


class RSSFetcher:
    """
    Cached, breaker-protected feed fetcher.

    A shared httpx.AsyncClient may be injected (the orchestrator owns one per
    run); otherwise each fetch opens and closes its own client.
    """

    def __init__(
        self,
        cache: Optional[FeedCache] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache
        self.breakers = breakers or CircuitBreakerRegistry()
        self._client = client
        self._breaker_config = CircuitBreakerConfig(
            failure_threshold=self.settings.feed_breaker_failure_threshold,
            success_threshold=self.settings.feed_breaker_success_threshold,
            timeout=self.settings.feed_breaker_timeout_seconds,
            reset_timeout=self.settings.feed_breaker_reset_seconds,
        )

    @staticmethod
    def breaker_name(url: str) -> str:
        return f"rss-feed-{url}"

    async def fetch_feed(self, url: str, use_cache: bool = True) -> List[NewsItem]:
        """Fetch and parse one feed.

        Raises:
            TransientFetchError: network error, timeout or non-2xx status
            FeedParseError: body is not RSS/Atom
            FeedUnavailableError: breaker open, request not sent
        """
        if use_cache and self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                return cached

        breaker = self.breakers.get_or_create(self.breaker_name(url), self._breaker_config)
        try:
            items = await breaker.execute(lambda: self._download_and_parse(url))
        except CircuitOpenError as e:
            raise FeedUnavailableError(str(e), url) from e
        except CircuitTimeoutError as e:
            raise TransientFetchError(str(e), url) from e

        if self.cache is not None:
            self.cache.set(url, items, self.settings.feed_cache_ttl_minutes)

        logger.info(f"[RSS] {url}: {len(items)} items")
        return items

    async def _download_and_parse(self, url: str) -> List[NewsItem]:
        body, content_type = await self._download(url)
        return parse_feed(body, url, content_type)

    async def _download(self, url: str) -> Tuple[bytes, Optional[str]]:
        """Raw body and Content-Type. Decoding is left to feedparser."""
        headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.8",
        }
        timeout = self.settings.http_timeout_seconds
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(url, headers=headers, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransientFetchError(f"HTTP {e.response.status_code} from {url}", url) from e
        except httpx.HTTPError as e:
            raise TransientFetchError(f"{type(e).__name__} fetching {url}: {e}", url) from e
        return response.content, response.headers.get("content-type")
