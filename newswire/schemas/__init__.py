"""
Schemas package: data models for newswire.

  - news.py: FeedItem, OrganizationRecord, ArticleRecord, job counters, CachedRead
"""

from newswire.schemas.news import (
    FeedItem, OrganizationRecord, ArticleRecord,
    IngestionResult, BackfillResult, CachedRead, SimilarArticles,
)

__all__ = [
    "FeedItem",
    "OrganizationRecord",
    "ArticleRecord",
    "IngestionResult",
    "BackfillResult",
    "CachedRead",
    "SimilarArticles",
]
