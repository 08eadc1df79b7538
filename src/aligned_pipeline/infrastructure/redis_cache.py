"""Redis-backed store for finished analyses."""

import redis

from aligned_pipeline.exceptions import CacheServiceError
from aligned_pipeline.logging import setup_logging

from .interfaces import CacheService

logger = setup_logging()


class RedisCacheService(CacheService):
    """
    Keeps serialized analyses in Redis under a project prefix.

    Keys are namespaced as `<prefix>:<key>` so the pipeline can share a Redis
    instance. Entries expire after `ttl_seconds`; re-writing an entry renews
    its TTL. Works with clients created with or without `decode_responses`.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int, key_prefix: str = "aligned"):
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix

    def get(self, key: str) -> str | None:
        """
        Raises:
            CacheServiceError: If Redis is unreachable or the command fails.
        """
        try:
            value = self._client.get(self._namespaced(key))
        except redis.RedisError as e:
            raise CacheServiceError(key, "get", cause=e) from e
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def set(self, key: str, value: str) -> None:
        """
        Raises:
            CacheServiceError: If Redis is unreachable or the command fails.
        """
        try:
            self._client.set(self._namespaced(key), value, ex=self._ttl_seconds)
        except redis.RedisError as e:
            raise CacheServiceError(key, "set", cause=e) from e
        logger.debug("Analysis cached", extra={"key": key, "ttl": self._ttl_seconds})

    def _namespaced(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"
