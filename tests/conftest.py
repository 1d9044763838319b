"""Shared fixtures: throwaway SQLite database, settings, clocks and item factory."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from budbringer.config import Settings
from budbringer.database import Database
from budbringer.schemas import NewsItem

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic-style clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """UTC datetime clock the test advances by hand."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def database(tmp_path) -> Database:
    db = Database(f"sqlite:///{tmp_path / 'budbringer-test.db'}")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def make_item() -> Callable[..., NewsItem]:
    def _make(
        title: str = "Headline",
        url: str = "https://example.com/1",
        description: str | None = None,
        published_at: datetime = NOW,
        source: str = "Example",
        content: str | None = None,
    ) -> NewsItem:
        return NewsItem(
            title=title,
            url=url,
            description=description,
            published_at=published_at,
            source=source,
            content=content,
        )

    return _make
