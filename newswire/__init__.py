"""newswire - feed ingestion, embedding backfill and cached article reads."""

__version__ = "1.0.0"
