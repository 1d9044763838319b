"""
robots.txt compliance for feed fetching.

Rules are fetched once per host and cached for an hour. Anything that goes
wrong (no robots.txt, 5xx, network error) means "allowed": robots.txt is a
courtesy, not a reason to drop a source.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)

ROBOTS_AGENT = "Budbringer-Bot"
DEFAULT_CRAWL_DELAY = 1.0


@dataclass(frozen=True)
class RobotsVerdict:
    allowed: bool
    crawl_delay: float = DEFAULT_CRAWL_DELAY


class RobotsChecker:
    """Per-host robots.txt cache with fail-open semantics."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        user_agent: Optional[str] = None,
    ):
        if user_agent is None or ttl_seconds is None:
            settings = get_settings()
            user_agent = user_agent or settings.user_agent
            if ttl_seconds is None:
                ttl_seconds = settings.robots_cache_ttl_seconds
        self._client = client
        self._user_agent = user_agent
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # base_url -> (parser or None when absent, expires_at)
        self._cache: Dict[str, Tuple[Optional[RobotFileParser], float]] = {}

    async def is_allowed(self, url: str) -> RobotsVerdict:
        parts = urlparse(url)
        if not parts.scheme or not parts.netloc:
            return RobotsVerdict(allowed=True)

        base_url = f"{parts.scheme}://{parts.netloc}"
        parser = await self._get_parser(base_url)
        if parser is None:
            return RobotsVerdict(allowed=True)

        allowed = parser.can_fetch(ROBOTS_AGENT, url)
        delay = parser.crawl_delay(ROBOTS_AGENT)
        if not allowed:
            logger.info(f"[ROBOTS] {url} disallowed for {ROBOTS_AGENT}")
        return RobotsVerdict(
            allowed=allowed,
            crawl_delay=float(delay) if delay is not None else DEFAULT_CRAWL_DELAY,
        )

    async def _get_parser(self, base_url: str) -> Optional[RobotFileParser]:
        now = self._clock()
        cached = self._cache.get(base_url)
        if cached is not None and cached[1] > now:
            return cached[0]

        parser = await self._fetch(base_url)
        self._cache[base_url] = (parser, now + self.ttl_seconds)
        return parser

    async def _fetch(self, base_url: str) -> Optional[RobotFileParser]:
        robots_url = f"{base_url}/robots.txt"
        headers = {"User-Agent": self._user_agent}
        try:
            if self._client is not None:
                response = await self._client.get(robots_url, headers=headers, timeout=5.0)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(5.0)) as client:
                    response = await client.get(robots_url, headers=headers)
        except httpx.HTTPError as e:
            # Fail open
            logger.debug(f"[ROBOTS] Could not fetch {robots_url}: {e}")
            return None

        if response.status_code != 200:
            return None

        parser = RobotFileParser()
        parser.set_url(robots_url)
        parser.parse(response.text.splitlines())
        return parser

    def clear(self):
        self._cache.clear()
