"""
Embedding backfill job.

Each run takes the oldest articles (by id) that have neither an embedding nor
the `embedding_skipped` mark, embeds headline/description/summary, and saves
every update in a single commit. Runs are single-flight per job instance:
a trigger that arrives while a run is in progress returns immediately.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy import func, select

from ..config import Settings, get_settings
from ..database import ArticleModel, Database
from ..errors import ProviderError
from ..schemas import BackfillResult
from ..tools.article_cache import ArticleCache
from ..tools.embeddings import EmbeddingProvider, generate_one

logger = logging.getLogger(__name__)


def build_embedding_text(
    headline: Optional[str], description: Optional[str], summary: Optional[str]
) -> str:
    """Present, trimmed parts joined by a blank line. Empty string when nothing is left."""
    parts = [p.strip() for p in (headline, description, summary) if p and p.strip()]
    return "\n\n".join(parts)


class EmbeddingBackfillJob:
    """Attaches embeddings to stored articles, one bounded batch per run."""

    def __init__(
        self,
        db: Database,
        provider: EmbeddingProvider,
        settings: Optional[Settings] = None,
        cache: Optional[ArticleCache] = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.provider = provider
        self.settings = settings or get_settings()
        self.cache = cache
        self.batch_size = batch_size or self.settings.embedding_batch_size
        self.vector_size = self.settings.embedding_vector_size
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def backfill_embeddings(self) -> BackfillResult:
        """Run one batch unless a run is already in flight."""
        if self._lock.locked():
            logger.info("[EMBED] Backfill already running, skipping this trigger")
            return BackfillResult(ran=False)

        async with self._lock:
            result = await self._run_batch()

        if result.updated and self.cache is not None:
            self.cache.invalidate_similar()
        return result

    async def _run_batch(self) -> BackfillResult:
        result = BackfillResult()

        with self.db.get_session() as session:
            articles = session.execute(
                select(ArticleModel)
                .where(ArticleModel.embedding.is_(None), ArticleModel.embedding_skipped.is_(False))
                .order_by(ArticleModel.id.asc())
                .limit(self.batch_size)
            ).scalars().all()

            if not articles:
                logger.debug("[EMBED] No articles waiting for embeddings")
                return result

            result.attempted = len(articles)
            for article in articles:
                text = build_embedding_text(article.headline, article.description, article.summary)
                if not text:
                    article.embedding_skipped = True
                    result.skipped_no_text += 1
                    continue

                try:
                    vector = await asyncio.to_thread(generate_one, self.provider, text)
                except ProviderError as e:
                    logger.warning(f"[EMBED] Article {article.id}: {e}")
                    result.failed += 1
                    continue

                if len(vector) != self.vector_size:
                    logger.warning(
                        f"[EMBED] Article {article.id}: got {len(vector)} dimensions, "
                        f"expected {self.vector_size}"
                    )
                article.embedding = vector
                result.updated += 1

        logger.info(
            f"[EMBED] attempted={result.attempted} updated={result.updated} "
            f"failed={result.failed} skipped_no_text={result.skipped_no_text}"
        )
        return result

    def count_pending(self) -> int:
        """Articles still waiting for an embedding."""
        with self.db.get_session() as session:
            return session.execute(
                select(func.count(ArticleModel.id)).where(
                    ArticleModel.embedding.is_(None), ArticleModel.embedding_skipped.is_(False)
                )
            ).scalar_one()
