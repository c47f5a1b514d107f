"""
News data models.

FeedItem is what the parser yields for one <item>/<entry>; ArticleRecord and
OrganizationRecord are the detached, JSON-serializable views of stored rows
that reads return and the cache stores.

Hierarchy: feed list → OrganizationRecord → FeedItem → ArticleRecord
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class FeedItem(BaseModel):
    """One normalized feed entry. `link` is always an absolute URL."""
    link: str
    headline: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    publication_date: Optional[datetime] = None


class OrganizationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    url: str


class ArticleRecord(BaseModel):
    """Stored article without its embedding vector."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    link: str
    organization_id: Optional[str] = None
    organization: Optional[OrganizationRecord] = None
    headline: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    publication_date: Optional[datetime] = None
    # Only set on similarity results
    distance: Optional[float] = None


class IngestionResult(BaseModel):
    """Counters for one ingestion tick."""
    sources_processed: int = 0
    sources_skipped: int = 0
    feeds_processed: int = 0
    feeds_failed: int = 0
    articles_inserted: int = 0


class BackfillResult(BaseModel):
    """Counters for one embedding backfill run.

    ran=False means another run was in flight and this trigger was dropped.
    """
    ran: bool = True
    attempted: int = 0
    updated: int = 0
    failed: int = 0
    skipped_no_text: int = 0


@dataclass
class CachedRead(Generic[T]):
    """Result of a cacheable read plus whether it was served from cache."""
    value: T
    cache_hit: bool


class SimilarArticles(BaseModel):
    """Similarity result. `has_embedding` is False when the source could not be compared."""
    has_embedding: bool = True
    articles: List[ArticleRecord] = Field(default_factory=list)
