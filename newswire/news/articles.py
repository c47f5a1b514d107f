"""
Article and organization reads and writes.

Reads are cache-aside through ArticleCache and report whether they were
served from cache. Every article mutation flushes the newest, search and
similar families; organization mutations also drop the slug entry.
"""

import asyncio
import logging
from typing import List, Optional
from urllib.parse import urlparse

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..config import Settings, get_settings
from ..database import ArticleModel, Database, OrganizationModel
from ..errors import ConflictError, NotFoundError, ValidationError
from ..schemas import ArticleRecord, CachedRead, FeedItem, OrganizationRecord, SimilarArticles
from ..tools.article_cache import NEWEST_KEYS, SEARCH_KEYS, SIMILAR_KEYS, ArticleCache, slugify
from ..tools.embeddings import EmbeddingProvider, generate_one
from .similarity import nearest_articles, to_record

logger = logging.getLogger(__name__)


def _newest_first(stmt):
    return stmt.order_by(ArticleModel.publication_date.desc().nulls_last(), ArticleModel.id.desc())


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ArticleService:
    """Read/write surface over the store, used by the API routes."""

    def __init__(
        self,
        db: Database,
        cache: ArticleCache,
        provider: Optional[EmbeddingProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.cache = cache
        self.provider = provider
        self.settings = settings or get_settings()

    # ── Organizations ──

    def find_organization_by_slug(self, slug: str) -> CachedRead[Optional[OrganizationRecord]]:
        """Organization whose slugified name equals `slug`. Misses are cached too."""
        normalized = slugify(slug)
        if not normalized:
            return CachedRead(None, False)

        found_in_cache, organization = self.cache.get_organization(normalized)
        if found_in_cache:
            return CachedRead(organization, True)

        organization = self._scan_organizations(normalized)
        self.cache.store_organization(
            normalized,
            organization,
            ttl=self.settings.organization_cache_ttl,
            not_found_ttl=self.settings.organization_not_found_cache_ttl,
        )
        return CachedRead(organization, False)

    def _scan_organizations(self, slug: str) -> Optional[OrganizationRecord]:
        with self.db.get_session() as session:
            for organization in session.execute(select(OrganizationModel)).scalars():
                if slugify(organization.name) == slug:
                    return OrganizationRecord.model_validate(organization)
        return None

    def _require_organization(self, slug: str) -> OrganizationRecord:
        organization = self.find_organization_by_slug(slug).value
        if organization is None:
            raise NotFoundError("organization", slug)
        return organization

    def list_organizations(self) -> List[OrganizationRecord]:
        with self.db.get_session() as session:
            rows = session.execute(select(OrganizationModel).order_by(OrganizationModel.name)).scalars()
            return [OrganizationRecord.model_validate(o) for o in rows]

    def create_organization(self, name: str, url: str) -> OrganizationRecord:
        if not name or not name.strip():
            raise ValidationError("organization name is required")
        if not slugify(name):
            raise ValidationError(f"organization name has no usable characters: {name!r}")

        with self.db.get_session() as session:
            organization = OrganizationModel(name=name.strip(), url=(url or "").strip())
            session.add(organization)
            session.flush()
            record = OrganizationRecord.model_validate(organization)

        # Drops a cached "not found" for the new slug
        self.cache.invalidate_organization(record.name)
        logger.info(f"Created organization '{record.name}'")
        return record

    def delete_organization(self, slug: str) -> int:
        """Delete an organization and its articles. Returns the number of articles removed."""
        normalized = slugify(slug)
        organization = self._scan_organizations(normalized) if normalized else None
        if organization is None:
            raise NotFoundError("organization", slug)

        with self.db.get_session() as session:
            removed = session.execute(
                delete(ArticleModel).where(ArticleModel.organization_id == organization.id)
            ).rowcount or 0
            session.execute(delete(OrganizationModel).where(OrganizationModel.id == organization.id))

        self.cache.invalidate_organization(normalized)
        self.cache.invalidate_organization(organization.name)
        self.cache.invalidate_articles()
        logger.info(f"Deleted organization '{organization.name}' and {removed} articles")
        return removed

    # ── Cached article reads ──

    def search_articles(
        self, query: str, organization_slug: Optional[str] = None
    ) -> CachedRead[List[ArticleRecord]]:
        """Substring search over headline, summary, description and content."""
        if not query or not query.strip():
            raise ValidationError("search query is required")

        organization = None
        if organization_slug and organization_slug.strip():
            organization = self._require_organization(organization_slug)

        key = self.cache.search_key(query, organization_slug)
        cached = self.cache.get_articles(key)
        if cached is not None:
            return CachedRead(cached, True)

        pattern = f"%{_escape_like(query.strip())}%"
        stmt = select(ArticleModel).options(selectinload(ArticleModel.organization)).where(
            or_(
                ArticleModel.headline.ilike(pattern, escape="\\"),
                ArticleModel.summary.ilike(pattern, escape="\\"),
                ArticleModel.description.ilike(pattern, escape="\\"),
                ArticleModel.content.ilike(pattern, escape="\\"),
            )
        )
        if organization is not None:
            stmt = stmt.where(ArticleModel.organization_id == organization.id)
        stmt = _newest_first(stmt).limit(self.settings.read_result_limit)

        with self.db.get_session() as session:
            articles = [to_record(a) for a in session.execute(stmt).scalars()]

        self.cache.store_articles(key, articles, self.settings.search_cache_ttl, SEARCH_KEYS)
        return CachedRead(articles, False)

    def newest_articles(self, organization: Optional[str] = None) -> CachedRead[List[ArticleRecord]]:
        """Most recent articles, optionally for one organization (case-insensitive name)."""
        key = self.cache.newest_key(organization)
        cached = self.cache.get_articles(key)
        if cached is not None:
            return CachedRead(cached, True)

        stmt = select(ArticleModel).options(selectinload(ArticleModel.organization))
        if organization and organization.strip():
            stmt = stmt.join(OrganizationModel, ArticleModel.organization_id == OrganizationModel.id).where(
                func.lower(OrganizationModel.name) == organization.strip().lower()
            )
        stmt = _newest_first(stmt).limit(self.settings.read_result_limit)

        with self.db.get_session() as session:
            articles = [to_record(a) for a in session.execute(stmt).scalars()]

        self.cache.store_articles(key, articles, self.settings.newest_cache_ttl, NEWEST_KEYS)
        return CachedRead(articles, False)

    def similar_to_article(self, link: str) -> CachedRead[SimilarArticles]:
        """Nearest articles to the stored article with this link.

        Raises NotFoundError for an unknown link. A source without an
        embedding yields has_embedding=False and is not cached.
        """
        if not link or not link.strip():
            raise ValidationError("link is required")
        link = link.strip()
        parsed = urlparse(link)
        if not (parsed.scheme and parsed.netloc):
            raise ValidationError(f"invalid link: {link!r}")

        key = self.cache.similar_key(link)
        cached = self.cache.get_articles(key)
        if cached is not None:
            return CachedRead(SimilarArticles(articles=cached), True)

        with self.db.get_session() as session:
            source = session.execute(
                select(ArticleModel).where(ArticleModel.link == link).limit(1)
            ).scalar_one_or_none()
            if source is None:
                raise NotFoundError("article", link)
            if source.embedding is None:
                return CachedRead(SimilarArticles(has_embedding=False), False)

            articles = nearest_articles(
                session,
                list(source.embedding),
                limit=self.settings.similar_result_limit,
                exclude_id=source.id,
            )

        self.cache.store_articles(key, articles, self.settings.similar_cache_ttl, SIMILAR_KEYS)
        return CachedRead(SimilarArticles(articles=articles), False)

    async def similar_to_text(self, text: str, organization: Optional[str] = None) -> List[ArticleRecord]:
        """Nearest articles to free text. Never cached."""
        if not text or not text.strip():
            raise ValidationError("text is required")
        if self.provider is None:
            raise ValidationError("no embedding provider configured")

        vector = await asyncio.to_thread(generate_one, self.provider, text.strip())
        with self.db.get_session() as session:
            return nearest_articles(
                session, vector, limit=self.settings.similar_result_limit, organization=organization
            )

    # ── Uncached reads ──

    def articles_by_organization(self, slug: str) -> List[ArticleRecord]:
        organization = self._require_organization(slug)
        with self.db.get_session() as session:
            rows = session.execute(
                _newest_first(
                    select(ArticleModel)
                    .options(selectinload(ArticleModel.organization))
                    .where(ArticleModel.organization_id == organization.id)
                )
            ).scalars()
            return [to_record(a) for a in rows]

    def count_articles(self) -> int:
        with self.db.get_session() as session:
            return session.execute(select(func.count(ArticleModel.id))).scalar_one()

    def count_missing_embeddings(self) -> int:
        with self.db.get_session() as session:
            return session.execute(
                select(func.count(ArticleModel.id)).where(ArticleModel.embedding.is_(None))
            ).scalar_one()

    # ── Article writes ──

    def create_article(self, item: FeedItem, organization_id: Optional[str] = None, content: Optional[str] = None) -> ArticleRecord:
        """Store one article. Raises ConflictError when the link already exists."""
        parsed = urlparse(item.link.strip())
        if not (parsed.scheme and parsed.netloc):
            raise ValidationError(f"link must be an absolute URL: {item.link!r}")

        with self.db.get_session() as session:
            if organization_id is not None and session.get(OrganizationModel, organization_id) is None:
                raise NotFoundError("organization", organization_id)

            article = ArticleModel(
                link=item.link.strip(),
                organization_id=organization_id,
                headline=item.headline,
                description=item.description,
                summary=item.summary,
                content=content,
                publication_date=item.publication_date,
            )
            session.add(article)
            try:
                session.flush()
            except IntegrityError as e:
                raise ConflictError(article.link) from e
            session.refresh(article, attribute_names=["organization"])
            record = to_record(article)

        self.cache.invalidate_articles()
        return record

    def delete_article(self, article_id: int) -> None:
        with self.db.get_session() as session:
            removed = session.execute(delete(ArticleModel).where(ArticleModel.id == article_id)).rowcount
        if not removed:
            raise NotFoundError("article", article_id)
        self.cache.invalidate_articles()

    def delete_all_articles(self) -> int:
        with self.db.get_session() as session:
            removed = session.execute(delete(ArticleModel)).rowcount or 0
        self.cache.invalidate_articles()
        logger.info(f"Deleted all {removed} articles")
        return removed
