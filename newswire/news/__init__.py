"""
News ingestion and enrichment.

Modules:
- feed_parser: RSS/Atom documents to FeedItem
- sources: feed list to owning organization (get-or-create)
- ingestion (FeedIngestionJob): fetch, dedup and store new articles
- embedding_job (EmbeddingBackfillJob): single-flight embedding backfill
- similarity: nearest-neighbour lookup over stored embeddings
- articles (ArticleService): cached reads and mutations
"""

from newswire.news.articles import ArticleService
from newswire.news.embedding_job import EmbeddingBackfillJob, build_embedding_text
from newswire.news.feed_parser import parse_feed
from newswire.news.ingestion import FeedIngestionJob
