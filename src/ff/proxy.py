"""
Transparent memoizing proxy.

``memoize(target)`` returns a MemoizedProxy that forwards attribute reads
and writes to ``target``. Reading a method yields a MemoizedMethod that
answers repeated calls from the cache; reading a nested object yields
another MemoizedProxy sharing the same cache.

Each call stores an envelope ``{"kind": "sync" | "async", "value": ...}``
so a hit returns the same shape (plain value or awaitable) as the
original call did. Awaitables are stored only after they complete
successfully; failures are never cached.

Cache infrastructure errors are logged and contained: the original
method always runs on a miss and its result always reaches the caller.
Errors raised by the original method propagate unchanged.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from enum import Enum
from types import ModuleType
from typing import Any, Awaitable, TypeVar

from ff.cache.base import MISSING
from ff.cache.memory import MemoryCache
from ff.keys import derive_key
from ff.logging import get_logger, log_context

logger = get_logger(__name__)

T = TypeVar("T")

SYNC = "sync"
ASYNC = "async"

# Attribute values of these types are returned as-is, never wrapped.
_PLAIN_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    memoryview,
    list,
    tuple,
    dict,
    set,
    frozenset,
    Enum,
)


def _is_nested_object(value: Any) -> bool:
    """Whether an attribute value is an object whose methods should be memoized."""
    if isinstance(value, (type, _PLAIN_TYPES)):
        return False
    return isinstance(value, ModuleType) or getattr(value, "__dict__", None) is not None


def _is_method(value: Any) -> bool:
    return callable(value) and not isinstance(value, type)


async def _resolved(value: T) -> T:
    return value


class MemoizedMethod:
    """Cache-aware stand-in for one bound method."""

    def __init__(self, original: Any, cache: Any, identifier: str) -> None:
        functools.update_wrapper(self, original)
        self._original = original
        self._cache = cache
        self.identifier = identifier

    def __repr__(self) -> str:
        return f"<MemoizedMethod {self.identifier}>"

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        with log_context(namespace=getattr(self._cache, "namespace", None), method=self.identifier):
            key = self._key(args, kwargs)
            if key is not None:
                entry = self._lookup(key)
                if entry is not MISSING:
                    logger.debug("Cache hit", key=key[:12], kind=entry["kind"])
                    if entry["kind"] == ASYNC:
                        return _resolved(entry["value"])
                    return entry["value"]
                logger.debug("Cache miss", key=key[:12])

        result = self._original(*args, **kwargs)
        if key is None:
            return result
        if inspect.isawaitable(result):
            return self._settle(key, result)
        self._store(key, SYNC, result)
        return result

    async def _settle(self, key: str, awaitable: Awaitable[T]) -> T:
        value = await awaitable
        # Persistent writes block (fsync, retry backoff); keep them off the loop.
        await asyncio.to_thread(self._store, key, ASYNC, value)
        return value

    def _key(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> str | None:
        try:
            return derive_key(self.identifier, args, kwargs)
        except Exception as e:
            logger.warning("Calling without cache: arguments not serializable", error=str(e))
            return None

    def _lookup(self, key: str) -> Any:
        try:
            if not self._cache.has(key):
                return MISSING
            entry = self._cache.get(key)
        except Exception as e:
            logger.warning("Cache read failed, treating as miss", key=key[:12], error=str(e))
            return MISSING

        if entry is MISSING:
            return MISSING
        if not isinstance(entry, dict) or entry.get("kind") not in (SYNC, ASYNC) or "value" not in entry:
            logger.warning("Ignoring malformed cache entry", key=key[:12])
            return MISSING
        return entry

    def _store(self, key: str, kind: str, value: Any) -> None:
        with log_context(namespace=getattr(self._cache, "namespace", None), method=self.identifier):
            try:
                self._cache.set(key, {"kind": kind, "value": value})
            except Exception as e:
                logger.warning("Cache write failed, result not cached", key=key[:12], error=str(e))


class MemoizedProxy:
    """Forwarding wrapper whose method calls go through a cache.

    Only calls made through the proxy are memoized. Methods of the target
    that call siblings on their own ``self`` reach the originals.
    """

    __slots__ = ("_ff_target", "_ff_cache", "_ff_path", "_ff_children", "__weakref__")

    def __init__(self, target: Any, cache: Any, path: tuple[str, ...] = ()) -> None:
        object.__setattr__(self, "_ff_target", target)
        object.__setattr__(self, "_ff_cache", cache)
        object.__setattr__(self, "_ff_path", path)
        object.__setattr__(self, "_ff_children", {})

    def __getattr__(self, name: str) -> Any:
        target = object.__getattribute__(self, "_ff_target")
        value = getattr(target, name)

        if name.startswith("__") and name.endswith("__"):
            return value

        cache = object.__getattribute__(self, "_ff_cache")
        path = object.__getattribute__(self, "_ff_path")

        if _is_method(value):
            return MemoizedMethod(value, cache, ".".join((*path, name)))

        if _is_nested_object(value):
            children: dict[str, MemoizedProxy] = object.__getattribute__(self, "_ff_children")
            child = children.get(name)
            if child is None or object.__getattribute__(child, "_ff_target") is not value:
                child = MemoizedProxy(value, cache, (*path, name))
                children[name] = child
            return child

        return value

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(object.__getattribute__(self, "_ff_target"), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(object.__getattribute__(self, "_ff_target"), name)

    def __dir__(self) -> list[str]:
        return dir(object.__getattribute__(self, "_ff_target"))

    def __repr__(self) -> str:
        target = object.__getattribute__(self, "_ff_target")
        return f"<MemoizedProxy {target!r}>"


def memoize(target: Any, cache: Any = None, *, prefix: str | None = None) -> Any:
    """Wrap an object so its method calls are memoized.

    Args:
        target: Any object; it is neither copied nor mutated.
        cache: Backend with has/get/set. Defaults to a fresh MemoryCache.
        prefix: Optional leading segment of every method identifier, for
            wrapped objects that share one cache and have same-named methods.

    Returns:
        A MemoizedProxy with the same attributes as ``target``.
    """
    if cache is None:
        cache = MemoryCache()
    return MemoizedProxy(target, cache, (prefix,) if prefix else ())


ff = memoize


def unwrap(obj: Any) -> Any:
    """Return the object behind a MemoizedProxy (or obj itself)."""
    if isinstance(obj, MemoizedProxy):
        return object.__getattribute__(obj, "_ff_target")
    return obj
