"""
Cache module for acquired images.

Provides the in-memory TTL backend and the word-keyed result cache in front
of the providers.
"""

from image_orchestrator.cache.base import CacheBackend, CacheEntry
from image_orchestrator.cache.images import ResultCache
from image_orchestrator.cache.memory import InMemoryCache

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "InMemoryCache",
    "ResultCache",
]
