"""
Custom exception hierarchy for ff.

All exceptions inherit from FFError, which provides optional context
for structured error handling and logging.

Errors raised by the wrapped object itself never pass through this
hierarchy; they reach the caller unchanged.
"""

from __future__ import annotations

from typing import Any


class FFError(Exception):
    """Base exception for all ff errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class StorageUnavailableError(FFError):
    """Raised when a persistent backend cannot create or access its directory.

    Context should include:
        - directory: The effective storage directory
        - reason: The underlying OS error message
    """

    pass


class SerializationError(FFError):
    """Raised when a value cannot be canonically serialized.

    Examples:
        - Circular reference inside a call argument
        - An argument of an unsupported type (functions, sockets, ...)
        - A result that cannot be written as JSON

    Context should include:
        - type: The offending Python type
        - path: Where in the value the failure happened, if known
    """

    pass


class CorruptEntryError(FFError):
    """Raised when an on-disk entry cannot be deserialized.

    Backends treat this as a cache miss; it never reaches the caller of a
    memoized method.

    Context should include:
        - path: The entry file
    """

    pass


class TransientCacheError(FFError):
    """Base class for read/write failures in a cache backend."""

    pass


class CacheReadError(TransientCacheError):
    """Raised when reading an entry fails for reasons other than corruption.

    Context should include:
        - path: The entry file
        - reason: The underlying OS error message
    """

    pass


class CacheWriteError(TransientCacheError):
    """Raised when writing an entry fails after all retry attempts.

    Context should include:
        - path: The entry file
        - attempts: Number of attempts made
    """

    pass
