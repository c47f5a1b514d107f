"""
Cache-aside layer for article and organization reads.

Key layout (shared with other readers of the same Redis, do not change):
  organizations:slug:{slug}     organization JSON, or NULL_CACHE_MARKER for a miss
  articles:newest:{sha256}      newest articles, keyed by lower-cased organization filter
  articles:search:{sha256}      search results, keyed by "{query}|{organization slug}"
  articles:similar:{sha256}     similar articles, keyed by lower-cased source link

Query-dependent families are tracked in registries (articles:{family}:keys).
Every write adds its key to the registry; any article mutation deletes every
registered key and then the registry itself. This flushes the whole family
rather than the affected entries.

Usage:
    cache = ArticleCache(get_cache_store())
    hit = cache.get_articles(cache.newest_key(None))
    if hit is None:
        articles = load_from_db()
        cache.store_articles(cache.newest_key(None), articles, ttl, NEWEST_KEYS)
"""

import hashlib
import json
import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..errors import CacheError
from ..schemas import ArticleRecord, OrganizationRecord
from .cache import CacheStore

logger = logging.getLogger(__name__)

# Not valid JSON for an organization, so it cannot collide with a cached hit.
NULL_CACHE_MARKER = "__null__"

NEWEST_KEYS = "articles:newest:keys"
SEARCH_KEYS = "articles:search:keys"
SIMILAR_KEYS = "articles:similar:keys"


def slugify(value: Optional[str]) -> str:
    """Lowercase, collapse every non-alphanumeric run into one hyphen, trim hyphens."""
    if not value or not value.strip():
        return ""

    parts = []
    previous_was_dash = False
    for character in value.strip().lower():
        if character.isalnum():
            parts.append(character)
            previous_was_dash = False
        elif not previous_was_dash:
            parts.append("-")
            previous_was_dash = True
    return "".join(parts).strip("-")


def cache_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _decode_articles(raw: str) -> List[ArticleRecord]:
    try:
        payload = json.loads(raw)
        return [ArticleRecord.model_validate(item) for item in payload]
    except (json.JSONDecodeError, TypeError, PydanticValidationError) as e:
        raise CacheError(f"unreadable cached article list: {e}") from e


def _decode_organization(raw: str) -> OrganizationRecord:
    try:
        return OrganizationRecord.model_validate_json(raw)
    except PydanticValidationError as e:
        raise CacheError(f"unreadable cached organization: {e}") from e


class ArticleCache:
    """Content-addressed cache for reads, with registry-based invalidation."""

    def __init__(self, store: CacheStore):
        self.store = store

    # ── Keys ──

    @staticmethod
    def organization_key(slug: str) -> str:
        return f"organizations:slug:{slug}"

    @staticmethod
    def newest_key(organization: Optional[str]) -> str:
        normalized = organization.strip().lower() if organization and organization.strip() else ""
        return f"articles:newest:{cache_hash(normalized)}"

    @staticmethod
    def search_key(query: str, organization_slug: Optional[str]) -> str:
        normalized_slug = slugify(organization_slug) if organization_slug else ""
        return f"articles:search:{cache_hash(f'{query.strip().lower()}|{normalized_slug}')}"

    @staticmethod
    def similar_key(link: str) -> str:
        return f"articles:similar:{cache_hash(link.strip().lower())}"

    # ── Organizations (with negative caching) ──

    def get_organization(self, slug: str) -> Tuple[bool, Optional[OrganizationRecord]]:
        """Returns (found_in_cache, organization). (True, None) is a cached miss."""
        raw = self.store.get(self.organization_key(slug))
        if raw is None:
            return False, None
        if raw == NULL_CACHE_MARKER:
            return True, None
        try:
            return True, _decode_organization(raw)
        except CacheError as e:
            logger.warning(f"ArticleCache: {e}")
            return False, None

    def store_organization(
        self, slug: str, organization: Optional[OrganizationRecord], ttl: int, not_found_ttl: int
    ) -> None:
        key = self.organization_key(slug)
        if organization is None:
            self.store.set(key, NULL_CACHE_MARKER, not_found_ttl)
        else:
            self.store.set(key, organization.model_dump_json(), ttl)

    def invalidate_organization(self, slug_or_name: str) -> None:
        slug = slugify(slug_or_name)
        if slug:
            self.store.delete(self.organization_key(slug))

    # ── Article lists ──

    def get_articles(self, key: str) -> Optional[List[ArticleRecord]]:
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return _decode_articles(raw)
        except CacheError as e:
            logger.warning(f"ArticleCache: {e}")
            return None

    def store_articles(self, key: str, articles: List[ArticleRecord], ttl: int, registry: str) -> None:
        payload = json.dumps([a.model_dump(mode="json") for a in articles])
        self.store.set(key, payload, ttl)
        self.store.set_add(registry, key)

    # ── Invalidation ──

    def _flush_registry(self, registry: str, always_delete: Optional[str] = None) -> int:
        tracked = {k for k in self.store.set_members(registry) if k}
        if always_delete:
            tracked.add(always_delete)
        if tracked:
            self.store.delete(*sorted(tracked))
        self.store.delete(registry)
        return len(tracked)

    def invalidate_newest(self) -> None:
        # The unfiltered key is dropped even when the registry is gone.
        self._flush_registry(NEWEST_KEYS, always_delete=self.newest_key(None))

    def invalidate_search(self) -> None:
        self._flush_registry(SEARCH_KEYS)

    def invalidate_similar(self) -> None:
        self._flush_registry(SIMILAR_KEYS)

    def invalidate_articles(self) -> None:
        """Flush every article family. Call after any article create/delete."""
        self.invalidate_newest()
        self.invalidate_search()
        self.invalidate_similar()
        logger.debug("ArticleCache: article caches invalidated")
