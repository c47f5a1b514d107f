# Tools module
from .cache import CacheStore, NullCacheStore, RedisCacheStore, get_cache_store
from .article_cache import ArticleCache, cache_hash, slugify
from .embeddings import (
    EmbeddingProvider,
    LocalEmbeddingProvider,
    OllamaEmbeddingProvider,
    get_embedding_provider,
)

__all__ = [
    # Cache
    "CacheStore",
    "NullCacheStore",
    "RedisCacheStore",
    "get_cache_store",
    "ArticleCache",
    "cache_hash",
    "slugify",
    # Embeddings
    "EmbeddingProvider",
    "LocalEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "get_embedding_provider",
]
