"""
SQLite database: pipeline source configuration, feed cache and stored items.

Tables:
  - pipelines: Named digest pipelines
  - content_sources: Feed configuration plus rolling reliability stats
  - pipeline_sources: Which sources a pipeline reads, with per-pipeline priority
  - feed_cache: TTL-boxed parsed feed contents keyed by feed URL
  - content_items: Deduplicated pipeline output, unique by URL
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import (
    create_engine, Column, String, Integer, Float, Text, DateTime, Boolean, ForeignKey,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from contextlib import contextmanager

from .config import get_settings
from .exceptions import ConfigurationError
from .schemas import ContentSource, NewsItem, SourceFilterConfig

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo, so timestamps are stored as naive UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Models ───────────────────────────────────────────────────────────────────

class PipelineModel(Base):
    """A digest pipeline."""
    __tablename__ = "pipelines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: to_db_time(_utcnow()))


class ContentSourceModel(Base):
    """Feed configuration. Reliability columns are owned by the tracker."""
    __tablename__ = "content_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(300), nullable=False)
    type = Column(String(20), default="rss")  # rss | scraping | api
    base_url = Column(String(1000), nullable=False)
    config = Column(Text, default="{}")  # JSON: filter_keywords, max_age_days
    category = Column(String(100))
    priority = Column(Integer, default=0)
    active = Column(Boolean, default=True)

    # Reliability
    reliability_score = Column(Float)
    historical_accuracy = Column(Float)
    fetch_success_rate = Column(Float)
    total_fetches = Column(Integer, default=0)
    successful_fetches = Column(Integer, default=0)
    last_fetch_success = Column(Boolean)
    last_fetch_at = Column(DateTime)

    created_at = Column(DateTime, default=lambda: to_db_time(_utcnow()))


class PipelineSourceModel(Base):
    """Pipeline ↔ source link."""
    __tablename__ = "pipeline_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pipeline_id = Column(Integer, ForeignKey("pipelines.id"), nullable=False, index=True)
    content_source_id = Column(Integer, ForeignKey("content_sources.id"), nullable=False)
    priority = Column(Integer, default=0)
    active = Column(Boolean, default=True)
    processor_config = Column(Text)  # JSON, overrides content_sources.config when set


class FeedCacheModel(Base):
    """Parsed feed contents with expiry."""
    __tablename__ = "feed_cache"

    feed_url = Column(String(1000), primary_key=True)
    feed_data = Column(Text, nullable=False)  # JSON array of NewsItem
    fetched_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


class ContentItemModel(Base):
    """Stored pipeline output."""
    __tablename__ = "content_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pipeline_id = Column(Integer, ForeignKey("pipelines.id"), index=True)
    url = Column(String(1000), nullable=False, unique=True)
    title = Column(String(1000), nullable=False)
    description = Column(Text)
    content = Column(Text)
    source = Column(String(300))
    category = Column(String(100))
    published_at = Column(DateTime)
    created_at = Column(DateTime, default=lambda: to_db_time(_utcnow()))


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager: lazily created engine plus short-lived sessions."""

    def __init__(self, database_url: Optional[str] = None):
        url = database_url or get_settings().database_url
        if "aiosqlite" in url:
            url = url.replace("sqlite+aiosqlite", "sqlite")
        if url.startswith("sqlite:///") and ":memory:" not in url:
            Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

        self.url = url
        self.engine = create_engine(url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    def dispose(self):
        self.engine.dispose()

    @contextmanager
    def get_session(self) -> Session:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Pipelines & sources ───────────────────────────────────────────

    def create_pipeline(self, name: str, active: bool = True) -> int:
        with self.get_session() as session:
            row = PipelineModel(name=name, active=active)
            session.add(row)
            session.flush()
            return row.id

    def add_content_source(self, source: Dict[str, Any]) -> int:
        """Insert a source. `config` is validated before it is stored."""
        config = SourceFilterConfig.model_validate(source.get("config") or {})
        with self.get_session() as session:
            row = ContentSourceModel(
                name=source["name"],
                type=source.get("type", "rss"),
                base_url=source["base_url"],
                config=config.model_dump_json(),
                category=source.get("category"),
                priority=source.get("priority", 0),
                active=source.get("active", True),
            )
            session.add(row)
            session.flush()
            return row.id

    def link_source(
        self,
        pipeline_id: int,
        source_id: int,
        priority: int = 0,
        active: bool = True,
        processor_config: Optional[Dict[str, Any]] = None,
    ) -> int:
        with self.get_session() as session:
            row = PipelineSourceModel(
                pipeline_id=pipeline_id,
                content_source_id=source_id,
                priority=priority,
                active=active,
                processor_config=json.dumps(processor_config) if processor_config else None,
            )
            session.add(row)
            session.flush()
            return row.id

    def get_pipeline_sources(self, pipeline_id: int) -> List[ContentSource]:
        """Active source links for a pipeline, highest link priority first.

        Raises ConfigurationError if the pipeline is unknown, the store is
        unreachable, or a source carries an invalid filter config.
        """
        try:
            with self.get_session() as session:
                pipeline = session.get(PipelineModel, pipeline_id)
                if pipeline is None:
                    raise ConfigurationError(f"Pipeline {pipeline_id} does not exist")

                rows = (
                    session.query(PipelineSourceModel, ContentSourceModel)
                    .join(ContentSourceModel, PipelineSourceModel.content_source_id == ContentSourceModel.id)
                    .filter(PipelineSourceModel.pipeline_id == pipeline_id)
                    .filter(PipelineSourceModel.active.is_(True))
                    .order_by(PipelineSourceModel.priority.desc(), PipelineSourceModel.id)
                    .all()
                )
                return [self._to_content_source(link, src) for link, src in rows]
        except SQLAlchemyError as e:
            raise ConfigurationError(f"Failed to load sources for pipeline {pipeline_id}: {e}") from e

    @staticmethod
    def _to_content_source(link: PipelineSourceModel, src: ContentSourceModel) -> ContentSource:
        raw = link.processor_config or src.config or "{}"
        try:
            return ContentSource(
                id=src.id,
                name=src.name,
                type=src.type,
                base_url=src.base_url,
                config=SourceFilterConfig.model_validate(json.loads(raw)),
                category=src.category,
                priority=link.priority or 0,
                active=bool(src.active),
            )
        except (ValueError, ValidationError) as e:
            raise ConfigurationError(f"Invalid configuration for source '{src.name}': {e}") from e

    def list_content_sources(self) -> List[Dict[str, Any]]:
        with self.get_session() as session:
            rows = session.query(ContentSourceModel).order_by(ContentSourceModel.priority.desc()).all()
            return [
                {
                    "id": r.id,
                    "name": r.name,
                    "type": r.type,
                    "base_url": r.base_url,
                    "category": r.category,
                    "priority": r.priority,
                    "active": r.active,
                    "reliability_score": r.reliability_score,
                    "total_fetches": r.total_fetches or 0,
                    "successful_fetches": r.successful_fetches or 0,
                }
                for r in rows
            ]

    # ── Content items ─────────────────────────────────────────────────

    def store_content_items(self, pipeline_id: int, items: List[NewsItem]) -> int:
        """Insert items not already stored (by URL). Returns rows added."""
        if not items:
            return 0
        urls = [item.url for item in items]
        with self.get_session() as session:
            existing = {
                url for (url,) in session.query(ContentItemModel.url)
                .filter(ContentItemModel.url.in_(urls)).all()
            }
            added = 0
            for item in items:
                if item.url in existing:
                    continue
                session.add(ContentItemModel(
                    pipeline_id=pipeline_id,
                    url=item.url,
                    title=item.title,
                    description=item.description,
                    content=item.content,
                    source=item.source,
                    category=item.category,
                    published_at=to_db_time(item.published_at),
                ))
                existing.add(item.url)
                added += 1
            return added

    def count_content_items(self, pipeline_id: Optional[int] = None) -> int:
        with self.get_session() as session:
            query = session.query(ContentItemModel)
            if pipeline_id is not None:
                query = query.filter(ContentItemModel.pipeline_id == pipeline_id)
            return query.count()


# Singleton
_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create the database singleton."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
