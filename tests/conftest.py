"""
Pytest configuration for the newswire test suite.

Provides:
- in-memory SQLite Database (StaticPool, tables created)
- InMemoryCacheStore: dict-backed CacheStore that counts reads and writes
- FakeEmbeddingProvider: deterministic vectors keyed by text
- RSS document builder
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

import pytest

from newswire.config import Settings
from newswire.database import ArticleModel, Database, OrganizationModel
from newswire.errors import ProviderError
from newswire.news.articles import ArticleService
from newswire.tools.article_cache import ArticleCache
from newswire.tools.cache import CacheStore
from newswire.tools.embeddings import EmbeddingProvider

pytest_plugins = ["pytest_asyncio"]


class InMemoryCacheStore(CacheStore):
    """CacheStore double. TTLs are recorded, never enforced."""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.sets: Dict[str, Set[str]] = {}
        self.ttls: Dict[str, int] = {}
        self.get_calls = 0
        self.set_calls = 0

    def get(self, key: str) -> Optional[str]:
        self.get_calls += 1
        return self.values.get(key)

    def set(self, key: str, value: str, ttl: int) -> None:
        self.set_calls += 1
        self.values[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys: str) -> None:
        for key in keys:
            self.values.pop(key, None)
            self.sets.pop(key, None)
            self.ttls.pop(key, None)

    def set_add(self, set_key: str, member: str) -> None:
        self.sets.setdefault(set_key, set()).add(member)

    def set_members(self, set_key: str) -> Set[str]:
        return set(self.sets.get(set_key, set()))


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns preset vectors per text, a default vector otherwise.

    Texts containing any string in `fail_on` raise ProviderError.
    """

    name = "fake"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = 3, fail_on=()):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.fail_on = tuple(fail_on)
        self.calls: List[str] = []

    def generate(self, texts: List[str]) -> List[List[float]]:
        result = []
        for text in texts:
            self.calls.append(text)
            if any(marker in text for marker in self.fail_on):
                raise ProviderError(f"fake provider refused: {text[:20]}")
            result.append(self.vectors.get(text, [0.5] * self.dimension))
        return result


def utc(year, month, day, hour=0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def rss_document(items) -> str:
    """RSS 2.0 text. `items` holds (link, title, pub_date or None) tuples."""
    entries = []
    for link, title, pub_date in items:
        date_tag = f"<pubDate>{pub_date}</pubDate>" if pub_date else ""
        entries.append(f"<item><title>{title}</title><link>{link}</link>{date_tag}</item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel><title>Test feed</title>'
        + "".join(entries)
        + "</channel></rss>"
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        cache_enabled=False,
        feed_list_files=[],
        embedding_vector_size=3,
        embedding_batch_size=200,
        run_once_on_startup=False,
    )


@pytest.fixture
def db() -> Database:
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def article_cache(cache_store) -> ArticleCache:
    return ArticleCache(cache_store)


@pytest.fixture
def provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def service(db, article_cache, provider, settings) -> ArticleService:
    return ArticleService(db, article_cache, provider, settings)


@pytest.fixture
def add_organization(db):
    def _add(name: str, url: str = "https://example.com") -> str:
        with db.get_session() as session:
            organization = OrganizationModel(name=name, url=url)
            session.add(organization)
            session.flush()
            return organization.id
    return _add


@pytest.fixture
def add_article(db):
    def _add(
        link: str,
        headline: Optional[str] = None,
        publication_date: Optional[datetime] = None,
        embedding: Optional[List[float]] = None,
        organization_id: Optional[str] = None,
        description: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> int:
        with db.get_session() as session:
            article = ArticleModel(
                link=link,
                headline=headline,
                description=description,
                summary=summary,
                publication_date=publication_date,
                embedding=embedding,
                organization_id=organization_id,
            )
            session.add(article)
            session.flush()
            return article.id
    return _add
