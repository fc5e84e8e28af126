"""
Package cache - Cache mémoire avec coalescence des fetchs.
"""

from .memory_cache import (
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    MemoryCache,
)

__all__ = [
    "DEFAULT_TTL_SECONDS",
    "CacheEntry",
    "MemoryCache",
]
