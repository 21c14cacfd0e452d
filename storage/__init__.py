"""
Storage Module
Volatile result cache.
"""
from .cache import CACHE_TTL_SECONDS, CacheEntry, ResultCache

__all__ = [
    "CACHE_TTL_SECONDS",
    "CacheEntry",
    "ResultCache",
]
