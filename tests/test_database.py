"""Tests for the SQLite source/pipeline store."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from budbringer.database import Database
from budbringer.exceptions import ConfigurationError


def test_explicit_url_does_not_read_global_settings(tmp_path) -> None:
    with patch("budbringer.database.get_settings", side_effect=AssertionError("settings read")):
        db = Database(f"sqlite:///{tmp_path / 'nested' / 'store.db'}")
    db.create_tables()

    assert (tmp_path / "nested").is_dir()
    db.dispose()


class TestPipelineSources:
    def test_ordered_by_link_priority_and_override_applied(self, database) -> None:
        pipeline_id = database.create_pipeline("Digest")
        low = database.add_content_source({"name": "Low", "base_url": "https://a.example/rss"})
        high = database.add_content_source({
            "name": "High",
            "base_url": "https://b.example/rss",
            "config": {"filter_keywords": ["AI"]},
        })
        database.link_source(pipeline_id, low, priority=1)
        database.link_source(
            pipeline_id, high, priority=9,
            processor_config={"filter_keywords": ["KI"], "max_age_days": 2},
        )

        sources = database.get_pipeline_sources(pipeline_id)

        assert [s.name for s in sources] == ["High", "Low"]
        assert sources[0].config.filter_keywords == ["KI"]
        assert sources[0].config.max_age_days == 2

    def test_inactive_links_excluded(self, database) -> None:
        pipeline_id = database.create_pipeline("Digest")
        source_id = database.add_content_source({"name": "Off", "base_url": "https://a.example/rss"})
        database.link_source(pipeline_id, source_id, active=False)

        assert database.get_pipeline_sources(pipeline_id) == []

    def test_invalid_stored_config_is_configuration_error(self, database) -> None:
        pipeline_id = database.create_pipeline("Digest")
        source_id = database.add_content_source({"name": "Bad", "base_url": "https://a.example/rss"})
        database.link_source(pipeline_id, source_id, processor_config={"max_age": 3})

        with pytest.raises(ConfigurationError):
            database.get_pipeline_sources(pipeline_id)
