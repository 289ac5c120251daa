"""
Cache backends for memoized calls.

This package provides:
- Cache contract (base.py): CacheBackend and the MISSING sentinel
- In-process caches (memory.py): MemoryCache, LRUCache
- Persistent cache (file_cache.py): FileSystemCache, one JSON file per entry
"""

from ff.cache.base import MISSING, CacheBackend
from ff.cache.file_cache import FileSystemCache
from ff.cache.memory import LRUCache, MemoryCache

__all__ = [
    "MISSING",
    "CacheBackend",
    "MemoryCache",
    "LRUCache",
    "FileSystemCache",
]
