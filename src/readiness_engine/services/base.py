"""
Base service class.

Services receive their collaborators through the constructor so tests can
build isolated instances; nothing here is a process-wide singleton.
"""

import logging
from abc import ABC
from typing import Awaitable, Callable, Optional, TypeVar

from ..cache import CacheKey, FetchOnceCache
from ..config import Settings, get_settings

T = TypeVar("T")


class BaseService(ABC):
    """
    Abstract base class for engine services.

    Provides common functionality:
    - Settings access
    - Logging setup
    - Fetch-once cache integration
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[FetchOnceCache] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._cache = cache
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger

    @property
    def cache(self) -> Optional[FetchOnceCache]:
        """Get the cache instance."""
        return self._cache

    async def _cached(
        self,
        key: CacheKey,
        producer: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
    ) -> T:
        """Run ``producer`` through the cache when one is configured."""
        if self._cache is None:
            return await producer()
        return await self._cache.fetch(key, producer, ttl)
