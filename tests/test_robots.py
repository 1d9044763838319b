"""Tests for the fail-open robots.txt checker."""

from __future__ import annotations

import asyncio

import httpx

from budbringer.tools.robots import RobotsChecker

ROBOTS = """User-agent: Budbringer-Bot
Disallow: /private/
Crawl-delay: 5

User-agent: *
Disallow:
"""


class RobotsServer:
    def __init__(self, status: int = 200, body: str = ROBOTS) -> None:
        self.status = status
        self.body = body
        self.calls = 0
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        assert request.url.path == "/robots.txt"
        if self.fail:
            raise httpx.ConnectError("connection refused")
        return httpx.Response(self.status, text=self.body)


def _check(server: RobotsServer, urls, clock=None, advance: float = 0.0):
    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            kwargs = {"clock": clock} if clock is not None else {}
            checker = RobotsChecker(client=client, ttl_seconds=3600, **kwargs)
            verdicts = []
            for url in urls:
                verdicts.append(await checker.is_allowed(url))
                if clock is not None:
                    clock.advance(advance)
            return verdicts

    return asyncio.run(_go())


def test_disallowed_path_is_denied() -> None:
    private, public = _check(
        RobotsServer(),
        ["https://site.example/private/feed.xml", "https://site.example/rss"],
    )

    assert private.allowed is False
    assert public.allowed is True
    assert public.crawl_delay == 5.0


def test_missing_robots_allows_everything() -> None:
    (verdict,) = _check(RobotsServer(status=404, body="not found"), ["https://site.example/private/x"])

    assert verdict.allowed is True
    assert verdict.crawl_delay == 1.0


def test_network_error_allows() -> None:
    server = RobotsServer()
    server.fail = True

    (verdict,) = _check(server, ["https://site.example/private/x"])

    assert verdict.allowed is True


def test_rules_cached_per_host(clock) -> None:
    server = RobotsServer()

    _check(server, ["https://site.example/a", "https://site.example/b"], clock=clock, advance=10.0)

    assert server.calls == 1


def test_rules_refetched_after_ttl(clock) -> None:
    server = RobotsServer()

    _check(server, ["https://site.example/a", "https://site.example/b"], clock=clock, advance=3600.0)

    assert server.calls == 2


def test_no_crawl_delay_uses_default() -> None:
    (verdict,) = _check(RobotsServer(body="User-agent: *\nDisallow: /admin/\n"), ["https://site.example/rss"])

    assert verdict.allowed is True
    assert verdict.crawl_delay == 1.0


def test_clear_forces_refetch(clock) -> None:
    server = RobotsServer()

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            checker = RobotsChecker(client=client, ttl_seconds=3600, clock=clock)
            await checker.is_allowed("https://site.example/a")
            checker.clear()
            await checker.is_allowed("https://site.example/a")

    asyncio.run(_go())

    assert server.calls == 2


def test_injected_user_agent_is_sent() -> None:
    agents = []

    def handler(request: httpx.Request) -> httpx.Response:
        agents.append(request.headers.get("User-Agent"))
        return httpx.Response(200, text=ROBOTS)

    async def _go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            checker = RobotsChecker(client=client, ttl_seconds=60, user_agent="Budbringer-Test/0.1")
            await checker.is_allowed("https://site.example/rss")
            return checker

    checker = asyncio.run(_go())

    assert agents == ["Budbringer-Test/0.1"]
    assert checker.ttl_seconds == 60
