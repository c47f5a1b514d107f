"""
Scheduler host -- drives the ingestion and embedding backfill jobs.

Both jobs run on cron triggers (INGESTION_CRON, EMBEDDING_CRON). Expressions
take the usual five crontab fields, or six with a leading seconds field.
With run_once, each job also gets a one-off run as soon as the scheduler starts.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import Settings, get_settings
from .errors import NewswireError
from .news.embedding_job import EmbeddingBackfillJob
from .news.ingestion import FeedIngestionJob

logger = logging.getLogger(__name__)


def build_cron_trigger(expression: str) -> CronTrigger:
    """CronTrigger from a 5-field crontab, or 6 fields with seconds first."""
    fields = expression.split()
    if len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
        return CronTrigger(
            second=second, minute=minute, hour=hour, day=day, month=month,
            day_of_week=day_of_week, timezone=timezone.utc,
        )
    return CronTrigger.from_crontab(expression, timezone=timezone.utc)


class NewswireScheduler:
    """Registers both jobs on an AsyncIOScheduler and keeps failures inside the tick."""

    def __init__(
        self,
        ingestion_job: FeedIngestionJob,
        backfill_job: EmbeddingBackfillJob,
        settings: Optional[Settings] = None,
    ):
        self.ingestion_job = ingestion_job
        self.backfill_job = backfill_job
        self.settings = settings or get_settings()
        self.scheduler: Optional[AsyncIOScheduler] = None

    async def run_ingestion(self) -> None:
        try:
            await self.ingestion_job.ingest_feeds()
        except NewswireError as e:
            logger.error(f"[SCHEDULER] Ingestion tick failed: {type(e).__name__}: {e}")

    async def run_backfill(self) -> None:
        try:
            await self.backfill_job.backfill_embeddings()
        except NewswireError as e:
            logger.error(f"[SCHEDULER] Embedding backfill failed: {type(e).__name__}: {e}")

    def start(self, run_once: Optional[bool] = None) -> AsyncIOScheduler:
        """Start the scheduler. Must be called with a running event loop."""
        if run_once is None:
            run_once = self.settings.run_once_on_startup

        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

        self.scheduler.add_job(
            self.run_ingestion,
            build_cron_trigger(self.settings.ingestion_cron),
            id="feed_ingestion",
            name="Ingest RSS feeds",
            coalesce=True,
        )
        self.scheduler.add_job(
            self.run_backfill,
            build_cron_trigger(self.settings.get_embedding_cron()),
            id="embedding_backfill",
            name="Generate article embeddings",
            coalesce=True,
        )

        if run_once:
            now = datetime.now(timezone.utc)
            self.scheduler.add_job(self.run_ingestion, "date", run_date=now, id="feed_ingestion_once")
            self.scheduler.add_job(self.run_backfill, "date", run_date=now, id="embedding_backfill_once")
            logger.info("[SCHEDULER] One-off run of both jobs queued")

        self.scheduler.start()
        logger.info(
            f"[SCHEDULER] Started: ingestion '{self.settings.ingestion_cron}', "
            f"embeddings '{self.settings.get_embedding_cron()}'"
        )
        return self.scheduler

    def shutdown(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
