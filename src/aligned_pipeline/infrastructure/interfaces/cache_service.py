"""Abstract interface for cache service operations."""

from abc import ABC, abstractmethod


class CacheService(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """
        Retrieves a value from cache.

        Raises:
            CacheServiceError: If the cache operation fails.
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Stores a value in cache.

        Raises:
            CacheServiceError: If the cache operation fails.
        """
        pass
