"""
Budbringer news ingestion - command-line entry point.

    budbringer seed                      # create a pipeline with the default sources
    budbringer run --pipeline 1          # fetch, dedup and store
    budbringer sources                   # list sources and reliability
    budbringer cache sweep|clear
    budbringer serve --port 8000         # HTTP trigger/status endpoints
"""

import argparse
import asyncio
import logging
import sys

from .config import DEFAULT_SOURCES, get_settings
from .database import get_database
from .exceptions import ConfigurationError
from .tools.feed_cache import FeedCache

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="budbringer",
        description="Budbringer RSS ingestion and deduplication pipeline",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Fetch, deduplicate and store news for a pipeline")
    run.add_argument("--pipeline", type=int, default=1, help="Pipeline id (default: 1)")
    run.add_argument("--no-store", action="store_true", help="Do not write content_items")
    run.add_argument("--limit", type=int, default=20, help="Articles to print (default: 20)")

    seed = sub.add_parser("seed", help="Create a pipeline linked to the default sources")
    seed.add_argument("--name", default="Daily AI digest", help="Pipeline name")

    sub.add_parser("sources", help="List content sources and reliability")

    cache = sub.add_parser("cache", help="Feed cache maintenance")
    cache.add_argument("action", choices=["sweep", "clear"])

    serve = sub.add_parser("serve", help="Start the HTTP trigger/status server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")

    return parser


async def _run(args) -> int:
    from .agents.orchestrator import NewsOrchestrator

    print("\n" + "=" * 60)
    print(f"BUDBRINGER NEWS INGESTION (pipeline {args.pipeline})")
    print("=" * 60 + "\n")

    try:
        async with NewsOrchestrator(get_database()) as orchestrator:
            state = await orchestrator.ingest(args.pipeline)
            stored = 0 if args.no_store else orchestrator.store_content_items(args.pipeline, state.items)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    for item in state.items[:args.limit]:
        print(f"  {item.published_at:%Y-%m-%d %H:%M}  [{item.source}] {item.title[:80]}")
        print(f"      {item.url}")

    print("\n" + "=" * 60)
    print(f"Sources attempted: {state.sources_attempted} (skipped {state.sources_skipped})")
    print(f"Articles: {state.articles_fetched} fetched, {state.articles_after_dedup} after dedup")
    print(f"Stored: {stored}")
    if state.errors:
        print(f"\nErrors: {len(state.errors)}")
        for error in state.errors[:5]:
            print(f"   - {error}")
    print("=" * 60 + "\n")
    return 0


def _seed(args) -> int:
    db = get_database()
    pipeline_id = db.create_pipeline(args.name)
    for source in DEFAULT_SOURCES:
        source_id = db.add_content_source(source)
        db.link_source(pipeline_id, source_id, priority=source["priority"])
    print(f"Created pipeline {pipeline_id} '{args.name}' with {len(DEFAULT_SOURCES)} sources")
    return 0


def _sources(args) -> int:
    rows = get_database().list_content_sources()
    if not rows:
        print("No sources configured. Run 'budbringer seed' first.")
        return 0
    for r in rows:
        score = r["reliability_score"]
        score_str = f"{score:.2f}" if score is not None else "  - "
        status = "active" if r["active"] else "inactive"
        print(
            f"{r['id']:>4}  {score_str}  {r['successful_fetches']:>4}/{r['total_fetches']:<4}  "
            f"{r['priority']:>4}  {status:<8}  {r['name']}"
        )
    return 0


def _cache(args) -> int:
    cache = FeedCache(get_database())
    if args.action == "sweep":
        print(f"Removed {cache.clear_expired()} expired entries")
    else:
        print(f"Removed {cache.clear_all()} entries")
    return 0


def cli_main(argv=None) -> int:
    """Command-line interface for the pipeline."""
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)

    if args.command == "run":
        return asyncio.run(_run(args))
    if args.command == "seed":
        return _seed(args)
    if args.command == "sources":
        return _sources(args)
    if args.command == "cache":
        return _cache(args)
    if args.command == "serve":
        import uvicorn
        from .api import app
        logger.info(f"Starting server on port {args.port}...")
        uvicorn.run(app, host=args.host, port=args.port)
        return 0
    return 1


def main():
    """Entry point for CLI."""
    sys.exit(cli_main())


if __name__ == "__main__":
    main()
