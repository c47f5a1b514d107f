"""Health check router -- store status, backfill state, config summary."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from newswire import __version__
from newswire.api.dependencies import DB, AppSettings, Backfill

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "newswire", "version": __version__}


@router.get("/health")
async def health(db: DB, settings: AppSettings, backfill: Backfill):
    try:
        with db.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning(f"Health check: database unavailable: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
        "backfill_running": backfill.is_running,
        "config": {
            "database_dialect": db.dialect,
            "cache_enabled": settings.cache_enabled,
            "embedding_provider": settings.embedding_provider,
            "embedding_vector_size": settings.embedding_vector_size,
            "embedding_batch_size": settings.embedding_batch_size,
            "ingestion_cron": settings.ingestion_cron,
            "embedding_cron": settings.get_embedding_cron(),
            "feed_lists": len(settings.feed_list_files),
        },
    }
