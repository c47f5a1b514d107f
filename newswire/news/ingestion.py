"""
Feed ingestion pipeline.

One tick walks every configured feed list:
  feed list → owning organization → each feed URL → fetch → parse → dedup → insert

Dedup assumes feeds are newest-first: the first item whose link is already
stored ends processing of that feed, and only the items above it are queued.
Inserts go through INSERT ... ON CONFLICT (link) DO NOTHING, so a concurrent
run that stored the same link first is counted as already ingested.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import httpx
from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database import ArticleModel, Database
from ..errors import NetworkError, ParseError
from ..schemas import FeedItem, IngestionResult
from ..tools.article_cache import ArticleCache
from .feed_parser import ParsedFeed, parse_feed
from .sources import get_or_create_organization, read_feed_list

logger = logging.getLogger(__name__)


class FeedIngestionJob:
    """Fetches every configured feed and stores the articles it has not seen yet."""

    def __init__(
        self,
        db: Database,
        settings: Optional[Settings] = None,
        cache: Optional[ArticleCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_dir: Optional[Path] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.cache = cache
        self._transport = transport
        self.base_dir = base_dir or Path.cwd()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.feed_fetch_timeout,
            headers={"User-Agent": self.settings.feed_user_agent},
            follow_redirects=True,
            transport=self._transport,
        )

    def _resolve_path(self, feed_list: str) -> Path:
        path = Path(feed_list)
        return path if path.is_absolute() else self.base_dir / path

    async def ingest_feeds(self) -> IngestionResult:
        """Run one ingestion tick over all configured feed lists."""
        result = IngestionResult()

        try:
            async with self._client() as client:
                for feed_list in self.settings.feed_list_files:
                    path = self._resolve_path(feed_list)
                    if not path.exists():
                        logger.warning(f"Feed list not found: {path}")
                        result.sources_skipped += 1
                        continue

                    feed_urls = read_feed_list(path)
                    await self.ingest_source(client, path.name, feed_urls, result)
        finally:
            # Feeds commit one by one, so rows stored before a failure still need the flush
            if result.articles_inserted and self.cache is not None:
                self.cache.invalidate_articles()

        logger.info(
            f"[INGEST] {result.articles_inserted} new articles from "
            f"{result.feeds_processed} feeds ({result.feeds_failed} failed, "
            f"{result.sources_skipped} sources skipped)"
        )
        return result

    async def ingest_source(
        self,
        client: httpx.AsyncClient,
        source_id: str,
        feed_urls: List[str],
        result: IngestionResult,
    ) -> None:
        """Ingest all feeds of one feed list into its owning organization."""
        with self.db.get_session() as session:
            organization = get_or_create_organization(session, source_id, feed_urls)
            organization_id = organization.id if organization else None

        if organization_id is None:
            logger.warning(f"Could not resolve an organization for {source_id}, skipping")
            result.sources_skipped += 1
            return

        result.sources_processed += 1
        for url in feed_urls:
            try:
                inserted = await self.process_feed(client, url, organization_id)
            except (NetworkError, ParseError) as e:
                logger.warning(f"[FAIL] {url}: {e}")
                result.feeds_failed += 1
                continue
            result.feeds_processed += 1
            result.articles_inserted += inserted

    async def fetch_feed(self, client: httpx.AsyncClient, url: str) -> str:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkError(url, f"{type(e).__name__}: {e}") from e
        return response.text

    async def preview_feed(self, url: str) -> List[FeedItem]:
        """Fetch and parse one feed without storing anything."""
        async with self._client() as client:
            return list(parse_feed(await self.fetch_feed(client, url)))

    async def process_feed(self, client: httpx.AsyncClient, url: str, organization_id: str) -> int:
        """Fetch, parse and store one feed. Returns the number of inserted articles."""
        feed = parse_feed(await self.fetch_feed(client, url))
        if feed.is_empty():
            logger.info(f"No items in feed {url}")
            return 0

        with self.db.get_session() as session:
            queued = self._collect_new_items(session, feed)
            if not queued:
                logger.debug(f"Nothing new in {url}")
                return 0
            inserted = self._insert_articles(session, queued, organization_id)

        if inserted:
            logger.info(f"[OK] {url}: {inserted} new articles")
        return inserted

    def _collect_new_items(self, session: Session, feed: ParsedFeed) -> List[FeedItem]:
        queued: List[FeedItem] = []
        seen = set()
        for item in feed:
            if item.link in seen:
                continue
            exists = session.execute(
                select(ArticleModel.id).where(ArticleModel.link == item.link).limit(1)
            ).first()
            if exists is not None:
                # Everything below this item was ingested on an earlier run
                break
            seen.add(item.link)
            queued.append(item)
        return queued

    def _insert_articles(self, session: Session, items: List[FeedItem], organization_id: str) -> int:
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(ArticleModel).on_conflict_do_nothing(index_elements=["link"])
        elif dialect == "sqlite":
            stmt = sqlite_insert(ArticleModel).on_conflict_do_nothing(index_elements=["link"])
        else:
            stmt = insert(ArticleModel)

        now = datetime.now(timezone.utc)
        inserted = 0
        for item in items:
            row = session.execute(
                stmt.values(
                    link=item.link,
                    organization_id=organization_id,
                    headline=item.headline,
                    description=item.description,
                    summary=item.summary,
                    publication_date=item.publication_date,
                    embedding_skipped=False,
                    created_at=now,
                )
            )
            inserted += max(row.rowcount or 0, 0)
        return inserted
