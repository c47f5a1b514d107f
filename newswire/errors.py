"""
Error taxonomy for ingestion, enrichment and cached reads.

Recoverability is decided by the caller's scope:
  - NetworkError / ParseError: absorbed per feed
  - ConflictError: duplicate link, treated as already ingested
  - NotFoundError / ValidationError: surfaced to the caller as client errors
  - ProviderError: embedding call failed, retried on the next scheduled run
  - PersistenceError: fatal for the current batch, propagated
  - CacheError: never leaves the cache port
"""


class NewswireError(Exception):
    """Base class for all newswire errors."""


class NetworkError(NewswireError):
    """Feed fetch failed (transport error, timeout or non-success status)."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{url}: {message}")


class ParseError(NewswireError):
    """Feed document is not well-formed XML."""


class ConflictError(NewswireError):
    """An article with the same link already exists."""

    def __init__(self, link: str):
        self.link = link
        super().__init__(f"article already exists: {link}")


class NotFoundError(NewswireError):
    """Unknown organization or article."""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class ValidationError(NewswireError):
    """Caller supplied unusable input (empty query, invalid link, ...)."""


class ProviderError(NewswireError):
    """Embedding provider failed or returned an empty result."""


class PersistenceError(NewswireError):
    """A save against the relational store failed; nothing was committed."""


class CacheError(NewswireError):
    """Cache backend failure. Raised and swallowed inside the cache port only."""
