"""Tests for the keyword/age relevance filter and its typed config."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from budbringer.news.filter import filter_relevant_news
from budbringer.schemas import SourceFilterConfig

from conftest import NOW


def test_no_keywords_returns_everything_without_age_check(make_item) -> None:
    old = make_item(url="https://a.com/old", published_at=NOW - timedelta(days=365))
    fresh = make_item(url="https://a.com/new")

    result = filter_relevant_news([old, fresh], SourceFilterConfig(), now=NOW)

    assert result == [old, fresh]


def test_age_boundary(make_item) -> None:
    config = SourceFilterConfig(filter_keywords=["AI"], max_age_days=7)
    too_old = make_item(
        title="AI story", url="https://a.com/1",
        published_at=NOW - timedelta(days=7, seconds=1),
    )
    just_in = make_item(
        title="AI story", url="https://a.com/2",
        published_at=NOW - timedelta(days=6, hours=23, minutes=59, seconds=59),
    )

    result = filter_relevant_news([too_old, just_in], config, now=NOW)

    assert result == [just_in]


def test_keyword_match_is_case_insensitive_substring(make_item) -> None:
    config = SourceFilterConfig(filter_keywords=["kunstig intelligens"])
    hit = make_item(title="Regjeringen satser på Kunstig Intelligens", url="https://a.com/1")
    miss = make_item(title="Været i morgen", url="https://a.com/2")

    assert filter_relevant_news([hit, miss], config, now=NOW) == [hit]


def test_keyword_in_description_counts(make_item) -> None:
    config = SourceFilterConfig(filter_keywords=["openai"])
    item = make_item(title="Ny modell lansert", description="OpenAI viste frem GPT-5")

    assert filter_relevant_news([item], config, now=NOW) == [item]


def test_keyword_not_matched_in_content(make_item) -> None:
    config = SourceFilterConfig(filter_keywords=["openai"])
    item = make_item(title="Ny modell", content="OpenAI er nevnt kun i brødteksten")

    assert filter_relevant_news([item], config, now=NOW) == []


def test_short_keyword_matches_inside_words(make_item) -> None:
    # Substring matching: "ai" is found inside "said"
    config = SourceFilterConfig(filter_keywords=["AI"])
    item = make_item(title="Minister said nothing new")

    assert filter_relevant_news([item], config, now=NOW) == [item]


class TestSourceFilterConfig:
    def test_defaults(self) -> None:
        config = SourceFilterConfig()
        assert config.filter_keywords == []
        assert config.max_age_days == 7

    def test_blank_keywords_dropped(self) -> None:
        config = SourceFilterConfig(filter_keywords=["AI", " ", "", "  KI "])
        assert config.filter_keywords == ["AI", "KI"]

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SourceFilterConfig.model_validate({"filter_keywords": ["AI"], "max_age": 3})

    @pytest.mark.parametrize("days", [0, -1, 366])
    def test_out_of_range_age_rejected(self, days: int) -> None:
        with pytest.raises(ValidationError):
            SourceFilterConfig(max_age_days=days)


def test_naive_now_is_taken_as_utc(make_item) -> None:
    config = SourceFilterConfig(filter_keywords=["AI"], max_age_days=1)
    fresh = make_item(title="AI story", url="https://a.com/1", published_at=NOW - timedelta(hours=23))
    stale = make_item(title="AI story", url="https://a.com/2", published_at=NOW - timedelta(hours=25))

    result = filter_relevant_news([fresh, stale], config, now=NOW.replace(tzinfo=None))

    assert result == [fresh]
