"""
Configuration management for the newswire ingestion service.
Covers the relational store, the Redis read cache, feed fetching,
the embedding provider and the scheduler triggers.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = Field(default="sqlite:///./newswire.db", alias="DATABASE_URL")

    # ── Read cache (Redis) ──
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    cache_enabled: bool = Field(default=True, alias="CACHE_ENABLED")
    # Kept well below the store timeouts: a slow cache is treated as a miss.
    cache_socket_timeout: float = Field(default=0.5, alias="CACHE_SOCKET_TIMEOUT")

    # TTLs in seconds
    organization_cache_ttl: int = Field(default=3600, alias="ORGANIZATION_CACHE_TTL")
    organization_not_found_cache_ttl: int = Field(default=300, alias="ORGANIZATION_NOT_FOUND_CACHE_TTL")
    search_cache_ttl: int = Field(default=300, alias="SEARCH_CACHE_TTL")
    newest_cache_ttl: int = Field(default=300, alias="NEWEST_CACHE_TTL")
    similar_cache_ttl: int = Field(default=600, alias="SIMILAR_CACHE_TTL")

    # ── Feed ingestion ──
    feed_list_files: List[str] = Field(default_factory=lambda: list(DEFAULT_FEED_LIST_FILES), alias="FEED_LIST_FILES")
    feed_fetch_timeout: float = Field(default=20.0, alias="FEED_FETCH_TIMEOUT")
    feed_user_agent: str = Field(default="newswire-scheduler/1.0", alias="FEED_USER_AGENT")

    # ── Embeddings ──
    # "ollama" (HTTP) or "local" (sentence-transformers)
    embedding_provider: str = Field(default="ollama", alias="EMBEDDING_PROVIDER")
    embedding_vector_size: int = Field(default=768, alias="EMBEDDING_VECTOR_SIZE")
    embedding_batch_size: int = Field(default=200, alias="EMBEDDING_BATCH_SIZE")
    ollama_base_url: str = Field(default="http://localhost:11434", alias="OLLAMA_BASE_URL")
    ollama_embedding_model: str = Field(default="bge-base-en-v1.5", alias="OLLAMA_EMBEDDING_MODEL")
    ollama_timeout: float = Field(default=60.0, alias="OLLAMA_TIMEOUT")
    local_embedding_model: str = Field(default="BAAI/bge-base-en-v1.5", alias="LOCAL_EMBEDDING_MODEL")

    # ── Scheduler ──
    ingestion_cron: str = Field(default="0 * * * *", alias="INGESTION_CRON")
    # Empty = same schedule as ingestion
    embedding_cron: str = Field(default="", alias="EMBEDDING_CRON")
    run_once_on_startup: bool = Field(default=False, alias="RUN_ONCE_ON_STARTUP")

    # ── Reads ──
    read_result_limit: int = Field(default=10, alias="READ_RESULT_LIMIT")
    similar_result_limit: int = Field(default=10, alias="SIMILAR_RESULT_LIMIT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    def get_embedding_cron(self) -> str:
        return self.embedding_cron or self.ingestion_cron


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Feed lists shipped with the repo, one feed URL per line.
DEFAULT_FEED_LIST_FILES = [
    "corpus/economist.txt",
    "corpus/theverge.txt",
    "corpus/arstechnica.txt",
    "corpus/zeit.txt",
    "corpus/semafor.txt",
    "corpus/dw.txt",
]


# ══════════════════════════════════════════════════════════════════════════════
# KNOWN ORGANIZATIONS
# Matched as a substring of the lower-cased feed list file name. Feed lists
# not listed here fall back to the host of their first feed URL.
# ══════════════════════════════════════════════════════════════════════════════

KNOWN_ORGANIZATIONS = {
    "economist": {
        "name": "The Economist",
        "url": "https://www.economist.com",
    },
    "theverge": {
        "name": "The Verge",
        "url": "https://www.theverge.com",
    },
    "zeit": {
        "name": "DIE ZEIT",
        "url": "https://www.zeit.de",
    },
}
