"""
In-process cache backends.

This module implements:
- MemoryCache: Unbounded dict-backed cache, the default for ff.memoize
- LRUCache: Size-bounded cache with least-recently-used eviction

Values are stored as-is, so object identity is preserved across hits.
"""

from __future__ import annotations

from collections import OrderedDict
from threading import Lock
from typing import Any, Iterator

from ff.cache.base import MISSING, CacheBackend


class MemoryCache(CacheBackend):
    """Process-local cache with no size bound and no persistence."""

    def __init__(self) -> None:
        self._rows: dict[str, Any] = {}

    def has(self, key: str) -> bool:
        return key in self._rows

    def get(self, key: str) -> Any:
        return self._rows.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._rows[key] = value

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it was present."""
        return self._rows.pop(key, MISSING) is not MISSING

    def clear(self) -> None:
        """Remove every entry."""
        self._rows.clear()

    def keys(self) -> Iterator[str]:
        """Iterate over stored keys."""
        return iter(list(self._rows))

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, key: object) -> bool:
        return key in self._rows


class LRUCache(MemoryCache):
    """Bounded in-process cache.

    When a ``set`` would exceed ``max_size`` entries, the entry that was
    least recently read or written is evicted. ``has`` does not count as
    a use. Reads and writes hold a lock, since asynchronous results are
    stored from a worker thread.
    """

    def __init__(self, max_size: int = 1024) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        super().__init__()
        self.max_size = max_size
        self._rows: OrderedDict[str, Any] = OrderedDict()
        self.evictions = 0
        self._lock = Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            if key not in self._rows:
                return MISSING
            self._rows.move_to_end(key)
            return self._rows[key]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._rows[key] = value
            self._rows.move_to_end(key)
            while len(self._rows) > self.max_size:
                self._rows.popitem(last=False)
                self.evictions += 1
