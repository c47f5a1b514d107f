"""
Tests for the feed ingestion pipeline.

Feeds are served by httpx.MockTransport; the store is in-memory SQLite.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import select

from newswire.database import ArticleModel
from newswire.errors import PersistenceError
from newswire.news.ingestion import FeedIngestionJob

from .conftest import rss_document


def mock_transport(feeds):
    """Serve `feeds` (url → body text, or int status) and 404 everything else."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = feeds.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        if isinstance(body, int):
            return httpx.Response(body)
        return httpx.Response(200, text=body)
    return httpx.MockTransport(handler)


def stored_links(db):
    with db.get_session() as session:
        return set(session.execute(select(ArticleModel.link)).scalars())


@pytest.fixture
def make_job(db, settings, article_cache, tmp_path):
    def _make(feeds, feed_lists):
        """feed_lists maps file name → feed URLs, written under tmp_path."""
        for name, urls in feed_lists.items():
            (tmp_path / name).write_text("\n".join(urls), encoding="utf-8")
        job_settings = settings.model_copy(update={"feed_list_files": list(feed_lists)})
        return FeedIngestionJob(
            db, job_settings, cache=article_cache, transport=mock_transport(feeds), base_dir=tmp_path,
        )
    return _make


FEED = "https://www.theverge.com/rss/index.xml"


class TestIngestFeeds:
    """End-to-end ticks."""

    @pytest.mark.asyncio
    async def test_inserts_new_articles(self, db, make_job):
        """Fresh feed items are stored under the resolved organization."""
        job = make_job(
            {FEED: rss_document([
                ("https://example.com/a", "A", "Mon, 01 Jan 2024 10:00:00 GMT"),
                ("https://example.com/b", "B", None),
            ])},
            {"theverge.txt": [FEED]},
        )

        result = await job.ingest_feeds()

        assert result.articles_inserted == 2
        assert result.sources_processed == 1
        assert result.feeds_processed == 1
        with db.get_session() as session:
            articles = session.execute(select(ArticleModel)).scalars().all()
            assert {a.organization.name for a in articles} == {"The Verge"}
            assert all(a.embedding is None for a in articles)

    @pytest.mark.asyncio
    async def test_created_at_is_utc(self, db, make_job):
        job = make_job({FEED: rss_document([("https://example.com/a", "A", None)])}, {"theverge.txt": [FEED]})
        started = datetime.now(timezone.utc)

        await job.ingest_feeds()

        with db.get_session() as session:
            created = session.execute(select(ArticleModel.created_at)).scalar_one()
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        assert started - timedelta(seconds=5) <= created <= datetime.now(timezone.utc) + timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_reingestion_is_idempotent(self, db, make_job):
        """A second tick over the same feed inserts nothing."""
        job = make_job(
            {FEED: rss_document([("https://example.com/a", "A", None), ("https://example.com/b", "B", None)])},
            {"theverge.txt": [FEED]},
        )

        first = await job.ingest_feeds()
        second = await job.ingest_feeds()

        assert first.articles_inserted == 2
        assert second.articles_inserted == 0
        assert stored_links(db) == {"https://example.com/a", "https://example.com/b"}

    @pytest.mark.asyncio
    async def test_stops_at_first_known_link(self, db, make_job, add_article):
        """[new A, existing B, new C] stores only A."""
        add_article("https://example.com/b", "B")
        job = make_job(
            {FEED: rss_document([
                ("https://example.com/a", "A", None),
                ("https://example.com/b", "B", None),
                ("https://example.com/c", "C", None),
            ])},
            {"theverge.txt": [FEED]},
        )

        result = await job.ingest_feeds()

        assert result.articles_inserted == 1
        assert stored_links(db) == {"https://example.com/a", "https://example.com/b"}

    @pytest.mark.asyncio
    async def test_link_stored_concurrently_counts_as_ingested(self, db, make_job, monkeypatch):
        """A link that appears between the dedup check and the insert is not an error."""
        job = make_job(
            {FEED: rss_document([("https://example.com/a", "A", None), ("https://example.com/b", "B", None)])},
            {"theverge.txt": [FEED]},
        )
        original_collect = job._collect_new_items

        def collect_then_race(session, feed):
            queued = original_collect(session, feed)
            session.add(ArticleModel(link="https://example.com/b", headline="stored elsewhere"))
            session.flush()
            return queued

        monkeypatch.setattr(job, "_collect_new_items", collect_then_race)

        result = await job.ingest_feeds()

        assert result.feeds_processed == 1
        assert result.feeds_failed == 0
        assert result.articles_inserted == 1
        with db.get_session() as session:
            headlines = dict(session.execute(select(ArticleModel.link, ArticleModel.headline)).all())
        assert headlines == {"https://example.com/a": "A", "https://example.com/b": "stored elsewhere"}

    @pytest.mark.asyncio
    async def test_newest_order_after_ingestion(self, make_job, service):
        """Items dated t=3, t=2, t=1 come back newest first."""
        job = make_job(
            {FEED: rss_document([
                ("https://example.com/3", "t3", "Wed, 03 Jan 2024 00:00:00 GMT"),
                ("https://example.com/2", "t2", "Tue, 02 Jan 2024 00:00:00 GMT"),
                ("https://example.com/1", "t1", "Mon, 01 Jan 2024 00:00:00 GMT"),
            ])},
            {"theverge.txt": [FEED]},
        )

        await job.ingest_feeds()
        newest = service.newest_articles().value

        assert [a.headline for a in newest] == ["t3", "t2", "t1"]


class TestFailures:
    """Per-feed failures never stop the tick."""

    @pytest.mark.asyncio
    async def test_failed_feeds_do_not_stop_others(self, db, make_job):
        broken = "https://www.theverge.com/broken.xml"
        malformed = "https://www.theverge.com/malformed.xml"
        job = make_job(
            {
                broken: 500,
                malformed: "<rss><channel><item>",
                FEED: rss_document([("https://example.com/ok", "ok", None)]),
            },
            {"theverge.txt": [broken, malformed, FEED]},
        )

        result = await job.ingest_feeds()

        assert result.feeds_failed == 2
        assert result.feeds_processed == 1
        assert stored_links(db) == {"https://example.com/ok"}

    @pytest.mark.asyncio
    async def test_transport_error_counts_as_failed_feed(self, db, settings, tmp_path):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        (tmp_path / "theverge.txt").write_text(FEED, encoding="utf-8")
        job = FeedIngestionJob(
            db,
            settings.model_copy(update={"feed_list_files": ["theverge.txt"]}),
            transport=httpx.MockTransport(handler),
            base_dir=tmp_path,
        )

        result = await job.ingest_feeds()

        assert result.feeds_failed == 1
        assert result.articles_inserted == 0

    @pytest.mark.asyncio
    async def test_missing_feed_list_is_skipped(self, settings, db, article_cache, tmp_path):
        job = FeedIngestionJob(
            db,
            settings.model_copy(update={"feed_list_files": ["nope.txt"]}),
            cache=article_cache,
            transport=mock_transport({}),
            base_dir=tmp_path,
        )

        result = await job.ingest_feeds()

        assert result.sources_skipped == 1
        assert result.sources_processed == 0

    @pytest.mark.asyncio
    async def test_unresolvable_organization_is_skipped(self, db, make_job):
        job = make_job({}, {"misc.txt": ["relative/feed.xml"]})

        result = await job.ingest_feeds()

        assert result.sources_skipped == 1
        assert stored_links(db) == set()

    @pytest.mark.asyncio
    async def test_empty_feed_is_a_no_op(self, make_job):
        job = make_job({FEED: rss_document([])}, {"theverge.txt": [FEED]})

        result = await job.ingest_feeds()

        assert result.feeds_processed == 1
        assert result.articles_inserted == 0


class TestCacheInvalidation:
    """New articles flush cached article reads."""

    @pytest.mark.asyncio
    async def test_newest_cache_flushed_after_insert(self, make_job, service):
        service.newest_articles()
        assert service.newest_articles().cache_hit

        job = make_job({FEED: rss_document([("https://example.com/n", "n", None)])}, {"theverge.txt": [FEED]})
        await job.ingest_feeds()

        read = service.newest_articles()
        assert not read.cache_hit
        assert [a.link for a in read.value] == ["https://example.com/n"]

    @pytest.mark.asyncio
    async def test_no_insert_keeps_cache(self, make_job, service):
        job = make_job({FEED: rss_document([])}, {"theverge.txt": [FEED]})
        service.newest_articles()

        await job.ingest_feeds()

        assert service.newest_articles().cache_hit

    @pytest.mark.asyncio
    async def test_cache_flushed_when_later_feed_fails(self, make_job, service, monkeypatch):
        """Rows committed before a store failure are visible on the next read."""
        second = "https://www.theverge.com/second.xml"
        job = make_job(
            {
                FEED: rss_document([("https://example.com/a", "a", None)]),
                second: rss_document([("https://example.com/b", "b", None)]),
            },
            {"theverge.txt": [FEED, second]},
        )
        original_insert = job._insert_articles
        calls = []

        def insert_then_fail(session, items, organization_id):
            calls.append(items)
            if len(calls) > 1:
                raise PersistenceError("database is locked")
            return original_insert(session, items, organization_id)

        monkeypatch.setattr(job, "_insert_articles", insert_then_fail)
        service.newest_articles()

        with pytest.raises(PersistenceError):
            await job.ingest_feeds()

        read = service.newest_articles()
        assert service.count_articles() == 1
        assert not read.cache_hit
        assert [a.link for a in read.value] == ["https://example.com/a"]


class TestPreview:
    @pytest.mark.asyncio
    async def test_preview_does_not_store(self, db, make_job):
        job = make_job({FEED: rss_document([("https://example.com/p", "p", None)])}, {})

        items = await job.preview_feed(FEED)

        assert [i.link for i in items] == ["https://example.com/p"]
        assert stored_links(db) == set()
