"""Fetch-once caching for provider calls."""

from .fetch_once import (
    CacheEntry,
    CacheKey,
    CacheKind,
    CacheStatistics,
    FetchOnceCache,
)

__all__ = [
    "CacheEntry",
    "CacheKey",
    "CacheKind",
    "CacheStatistics",
    "FetchOnceCache",
]
