"""
Base classes for caching.

This module implements:
- MISSING: Sentinel returned by ``get`` for absent keys
- CacheBackend: Abstract interface every backend satisfies

The contract is deliberately small: ``has``, ``get`` and ``set``. Nothing
above it knows which backend is in use. Any object with these three
methods works with ``ff.memoize``; subclassing CacheBackend is optional.

The contract is synchronous so one backend can serve both plain and
coroutine methods of the same wrapped object.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Final


class _Missing:
    """Type of the MISSING sentinel."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


class CacheBackend(ABC):
    """Abstract interface for cache implementations."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """Check if a key exists in the cache."""
        ...

    @abstractmethod
    def get(self, key: str) -> Any:
        """Get a value from the cache, or MISSING if absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous value for the key."""
        ...
