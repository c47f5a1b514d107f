"""
newswire - Main Entry Point.
FastAPI server, scheduler host and CLI interface.

Usage:
    python -m newswire.main --server              # API on :8000
    python -m newswire.main --server --scheduler  # API plus cron jobs
    python -m newswire.main --scheduler           # cron jobs only
    python -m newswire.main --ingest --backfill   # one tick of each job, then exit
    python -m newswire.main --run-once            # same as --ingest --backfill
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import articles, feeds, health, organizations
from .api.errors import register_exception_handlers
from .config import Settings, get_settings
from .database import Database, get_database
from .news.articles import ArticleService
from .news.embedding_job import EmbeddingBackfillJob
from .news.ingestion import FeedIngestionJob
from .scheduler import NewswireScheduler
from .tools.article_cache import ArticleCache
from .tools.cache import CacheStore, get_cache_store
from .tools.embeddings import EmbeddingProvider, get_embedding_provider

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)


class Services:
    """Everything the routes and the scheduler share, wired once per process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        db: Optional[Database] = None,
        cache_store: Optional[CacheStore] = None,
        provider: Optional[EmbeddingProvider] = None,
    ):
        self.settings = settings or get_settings()
        self.db = db or get_database()
        self.cache = ArticleCache(cache_store or get_cache_store(self.settings))
        self.provider = provider or get_embedding_provider(self.settings)

        self.article_service = ArticleService(self.db, self.cache, self.provider, self.settings)
        self.ingestion_job = FeedIngestionJob(self.db, self.settings, cache=self.cache)
        self.backfill_job = EmbeddingBackfillJob(self.db, self.provider, self.settings, cache=self.cache)


def create_app(
    services: Optional[Services] = None, with_scheduler: bool = False, run_once: bool = False
) -> FastAPI:
    """Build the API. Services are created on startup unless passed in."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        wired = services or Services()
        wired.db.create_tables()

        app.state.settings = wired.settings
        app.state.db = wired.db
        app.state.article_service = wired.article_service
        app.state.ingestion_job = wired.ingestion_job
        app.state.backfill_job = wired.backfill_job

        scheduler = None
        if with_scheduler:
            scheduler = NewswireScheduler(wired.ingestion_job, wired.backfill_job, wired.settings)
            scheduler.start(run_once=run_once or None)

        logger.info(f"newswire API started (database: {wired.db.dialect})")
        yield

        if scheduler is not None:
            scheduler.shutdown()

    app = FastAPI(
        title="newswire",
        description="RSS ingestion with embeddings, similarity search and cached reads",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Cache"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
    app.include_router(articles.router, prefix="/api/articles", tags=["articles"])
    app.include_router(feeds.router, prefix="/api", tags=["feeds"])

    return app


# ── CLI ──────────────────────────────────────────────────────────────────────

async def run_jobs(services: Services, ingest: bool, backfill: bool) -> int:
    """Run one tick of the selected jobs. Returns a process exit code."""
    if ingest:
        result = await services.ingestion_job.ingest_feeds()
        print(
            f"Ingestion: {result.articles_inserted} new articles, "
            f"{result.feeds_processed} feeds ok, {result.feeds_failed} failed"
        )
    if backfill:
        result = await services.backfill_job.backfill_embeddings()
        print(
            f"Embeddings: attempted={result.attempted} updated={result.updated} "
            f"failed={result.failed} skipped_no_text={result.skipped_no_text}"
        )
    return 0


async def run_scheduler(services: Services, run_once: bool) -> None:
    """Run the cron scheduler until interrupted."""
    scheduler = NewswireScheduler(services.ingestion_job, services.backfill_job, services.settings)
    scheduler.start(run_once=run_once or None)
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def main(argv=None) -> int:
    """Entry point for CLI."""
    parser = argparse.ArgumentParser(description="newswire - RSS ingestion and embeddings")
    parser.add_argument("--server", action="store_true", help="Start the FastAPI server")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    parser.add_argument("--scheduler", action="store_true", help="Run ingestion and backfill on their cron triggers")
    parser.add_argument("--ingest", action="store_true", help="Run one ingestion tick and exit")
    parser.add_argument("--backfill", action="store_true", help="Run one embedding backfill batch and exit")
    parser.add_argument("--run-once", action="store_true", help="Run both jobs once (with --scheduler: on startup)")

    args = parser.parse_args(argv)

    if args.server:
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        server_app = create_app(with_scheduler=args.scheduler, run_once=args.run_once)
        uvicorn.run(server_app, host="0.0.0.0", port=args.port)
        return 0

    if args.scheduler:
        try:
            asyncio.run(run_scheduler(Services(), args.run_once))
        except KeyboardInterrupt:
            logger.info("Scheduler stopped")
        return 0

    ingest = args.ingest or args.run_once
    backfill = args.backfill or args.run_once
    if not (ingest or backfill):
        parser.print_help()
        return 1

    return asyncio.run(run_jobs(Services(), ingest, backfill))


app = create_app()


if __name__ == "__main__":
    sys.exit(main())
