"""
ff - transparent method memoization for tests and development.

    from ff import ff, FileSystemCache

    client = ff(ApiClient(), FileSystemCache(namespace="api"))
    client.users.get(42)   # runs once, then answered from .ff-cache/api/
"""

from ff.cache import MISSING, CacheBackend, FileSystemCache, LRUCache, MemoryCache
from ff.exceptions import (
    CacheReadError,
    CacheWriteError,
    CorruptEntryError,
    FFError,
    SerializationError,
    StorageUnavailableError,
    TransientCacheError,
)
from ff.keys import canonicalize, derive_key
from ff.proxy import MemoizedMethod, MemoizedProxy, ff, memoize, unwrap

__version__ = "0.1.0"

__all__ = [
    "ff",
    "memoize",
    "unwrap",
    "MemoizedProxy",
    "MemoizedMethod",
    "derive_key",
    "canonicalize",
    "MISSING",
    "CacheBackend",
    "MemoryCache",
    "LRUCache",
    "FileSystemCache",
    "FFError",
    "StorageUnavailableError",
    "SerializationError",
    "CorruptEntryError",
    "TransientCacheError",
    "CacheReadError",
    "CacheWriteError",
]
