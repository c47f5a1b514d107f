"""
Key-value cache port.

Every CacheStore call is best-effort: a backend failure or timeout is logged
and reported as "nothing there" (get → None, set_members → empty set), and
writes/deletes silently do nothing. Callers never special-case failures.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Set

import redis

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Minimal cache surface used by the read layer."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        ...

    @abstractmethod
    def delete(self, *keys: str) -> None:
        ...

    @abstractmethod
    def set_add(self, set_key: str, member: str) -> None:
        ...

    @abstractmethod
    def set_members(self, set_key: str) -> Set[str]:
        ...


class RedisCacheStore(CacheStore):
    """Redis-backed cache with short socket timeouts and swallowed failures."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, timeout: float = 0.5) -> "RedisCacheStore":
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            logger.debug(f"Cache get failed for {key}: {e}")
            return None

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self.client.set(key, value, ex=ttl)
        except redis.RedisError as e:
            logger.debug(f"Cache set failed for {key}: {e}")

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as e:
            logger.debug(f"Cache delete failed for {len(keys)} keys: {e}")

    def set_add(self, set_key: str, member: str) -> None:
        try:
            self.client.sadd(set_key, member)
        except redis.RedisError as e:
            logger.debug(f"Cache sadd failed for {set_key}: {e}")

    def set_members(self, set_key: str) -> Set[str]:
        try:
            return set(self.client.smembers(set_key))
        except redis.RedisError as e:
            logger.debug(f"Cache smembers failed for {set_key}: {e}")
            return set()


class NullCacheStore(CacheStore):
    """Used when caching is disabled: every read misses, writes are dropped."""

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str, ttl: int) -> None:
        return None

    def delete(self, *keys: str) -> None:
        return None

    def set_add(self, set_key: str, member: str) -> None:
        return None

    def set_members(self, set_key: str) -> Set[str]:
        return set()


def get_cache_store(settings: Optional[Settings] = None) -> CacheStore:
    """Build the configured cache store."""
    settings = settings or get_settings()
    if not settings.cache_enabled:
        logger.info("Read cache disabled (CACHE_ENABLED=false)")
        return NullCacheStore()
    return RedisCacheStore.from_url(settings.redis_url, timeout=settings.cache_socket_timeout)
