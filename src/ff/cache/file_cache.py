"""
File-based persistent cache.

This module implements:
- FileSystemCache: One JSON file per entry under <cache_dir>/<namespace>/

Features:
- Namespaces partition one storage root between unrelated wrapped objects
- Human-readable entries (orjson, indented, sorted keys)
- Atomic writes: serialize first, write a temp file, then os.replace
- Transient write failures retried with tenacity
- Corrupt entries are logged and read as misses

Values must be JSON-serializable. Tuples read back as lists and NaN/inf
floats read back as null; richer types are out of contract.
"""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Iterator

import orjson
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ff.cache.base import MISSING, CacheBackend
from ff.config import DEFAULT_WRITE_ATTEMPTS, get_settings, validate_namespace
from ff.exceptions import (
    CacheReadError,
    CacheWriteError,
    CorruptEntryError,
    SerializationError,
    StorageUnavailableError,
)
from ff.logging import get_logger

logger = get_logger(__name__)

ENTRY_SUFFIX = ".json"

# Keys matching this are used verbatim as file names; others are hashed.
_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]{0,127}\Z")

# Hashed names carry a prefix outside the safe alphabet.
HASHED_PREFIX = "~"
_HASHED_NAME = re.compile(r"^~[0-9a-f]{64}\Z")

_DUMP_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS | orjson.OPT_APPEND_NEWLINE


def entry_filename(key: str) -> str:
    """Map a cache key to its entry file name.

    Pure function of the key: derived keys (hex digests) are used as-is,
    anything that is not a safe single path segment is replaced by ``~``
    and its SHA-256 hex digest. The prefix keeps the mapping injective.
    """
    if _SAFE_KEY.match(key):
        return key + ENTRY_SUFFIX
    digest = hashlib.sha256(key.encode("utf-8", "surrogatepass")).hexdigest()
    return HASHED_PREFIX + digest + ENTRY_SUFFIX


def is_entry_name(name: str) -> bool:
    """Whether name is a file stem that entry_filename can produce."""
    return bool(_SAFE_KEY.match(name) or _HASHED_NAME.match(name))


def encode_entry(value: Any) -> bytes:
    """Serialize a value to the on-disk format.

    Raises:
        SerializationError: If the value is not JSON-serializable.
    """
    try:
        return orjson.dumps(value, option=_DUMP_OPTIONS)
    except orjson.JSONEncodeError as e:
        raise SerializationError(
            f"Value cannot be stored as JSON: {e}",
            context={"type": type(value).__name__},
        ) from e


def decode_entry(blob: bytes, path: Path) -> Any:
    """Deserialize an entry file's content.

    Raises:
        CorruptEntryError: If the content is not valid JSON.
    """
    try:
        return orjson.loads(blob)
    except orjson.JSONDecodeError as e:
        raise CorruptEntryError(
            f"Cache entry is not valid JSON: {e}",
            context={"path": str(path)},
        ) from e


class FileSystemCache(CacheBackend):
    """Durable cache storing each entry as a file.

    Layout is ``<cache_dir>/<namespace>/<entry file>``. The directory is
    created on construction. Several processes may share one directory;
    the only atomicity is the per-file replace.
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        namespace: str | None = None,
        *,
        write_attempts: int | None = None,
    ) -> None:
        """Initialize the cache and create its directory.

        Args:
            cache_dir: Storage root. Defaults to FF_CACHE_DIR.
            namespace: Partition under the root. Defaults to FF_NAMESPACE.
            write_attempts: Attempts per write. Defaults to FF_WRITE_ATTEMPTS.

        Raises:
            StorageUnavailableError: If the directory cannot be created.
            ValueError: If the namespace is not a single path segment.
        """
        if cache_dir is None or namespace is None:
            settings = get_settings()
            cache_dir = settings.CACHE_DIR if cache_dir is None else cache_dir
            namespace = settings.NAMESPACE if namespace is None else namespace
            if write_attempts is None:
                write_attempts = settings.WRITE_ATTEMPTS
        elif write_attempts is None:
            # Explicit location: an unrelated invalid FF_* variable must not fail.
            try:
                write_attempts = get_settings().WRITE_ATTEMPTS
            except ValidationError:
                write_attempts = DEFAULT_WRITE_ATTEMPTS

        self.cache_dir = Path(cache_dir).expanduser().absolute()
        self.namespace = validate_namespace(namespace)
        self.write_attempts = max(1, write_attempts)
        self._directory = self.cache_dir / self.namespace

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(
                "Cannot create cache directory",
                context={"directory": str(self._directory), "reason": str(e)},
            ) from e

        logger.debug("File cache ready", directory=str(self._directory))

    @property
    def directory(self) -> Path:
        """Effective storage directory (cache_dir / namespace)."""
        return self._directory

    def entry_path(self, key: str) -> Path:
        """Get the file path for a key."""
        return self._directory / entry_filename(key)

    def entry_name(self, key: str) -> str:
        """Get the entry name (file stem) a key is stored under."""
        return entry_filename(key)[: -len(ENTRY_SUFFIX)]

    def named_path(self, name: str) -> Path:
        """Get the file path for an entry name as yielded by keys().

        Raises:
            ValueError: If name is not a valid entry name.
        """
        if not is_entry_name(name):
            raise ValueError(f"not an entry name: {name!r}")
        return self._directory / (name + ENTRY_SUFFIX)

    def has(self, key: str) -> bool:
        return self.entry_path(key).is_file()

    def get(self, key: str) -> Any:
        """Read an entry.

        Returns:
            The stored value, or MISSING if absent or corrupt.

        Raises:
            CacheReadError: If the file exists but cannot be read.
        """
        return self._read(self.entry_path(key))

    def has_entry(self, name: str) -> bool:
        """Whether an entry with this name exists."""
        return is_entry_name(name) and self.named_path(name).is_file()

    def load_entry(self, name: str) -> Any:
        """Read an entry by name. Same results as get()."""
        return self._read(self.named_path(name))

    def _read(self, path: Path) -> Any:
        try:
            blob = path.read_bytes()
        except FileNotFoundError:
            return MISSING
        except OSError as e:
            raise CacheReadError(
                "Cannot read cache entry",
                context={"path": str(path), "reason": str(e)},
            ) from e

        try:
            return decode_entry(blob, path)
        except CorruptEntryError as e:
            logger.warning("Ignoring corrupt cache entry", path=str(path), error=str(e))
            return MISSING

    def set(self, key: str, value: Any) -> None:
        """Write an entry atomically, replacing any previous one.

        Raises:
            SerializationError: If the value is not JSON-serializable.
                Nothing is written in that case.
            CacheWriteError: If every write attempt fails.
        """
        blob = encode_entry(value)
        path = self.entry_path(key)

        retrying = Retrying(
            retry=retry_if_exception_type(OSError),
            wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
            stop=stop_after_attempt(self.write_attempts),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._write_atomic(path, blob)
        except OSError as e:
            raise CacheWriteError(
                "Cannot write cache entry",
                context={"path": str(path), "attempts": self.write_attempts, "reason": str(e)},
            ) from e

        logger.debug("Stored cache entry", path=str(path), size=len(blob))

    def _write_atomic(self, path: Path, blob: bytes) -> None:
        """Write blob to a temp file beside path, then rename over it."""
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def delete(self, key: str) -> bool:
        """Delete an entry. Returns True if it existed."""
        return self._unlink(self.entry_path(key))

    def remove_entry(self, name: str) -> bool:
        """Delete an entry by name. Returns True if it existed."""
        return self._unlink(self.named_path(name))

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def keys(self) -> Iterator[str]:
        """Iterate over entry names (file names without suffix), sorted."""
        for path in sorted(self._directory.glob("*" + ENTRY_SUFFIX)):
            name = path.name[: -len(ENTRY_SUFFIX)]
            if is_entry_name(name) and path.is_file():
                yield name

    def clear(self) -> int:
        """Delete every entry in this namespace. Returns the number removed."""
        removed = 0
        for name in list(self.keys()):
            if self.remove_entry(name):
                removed += 1
        logger.info("Cleared cache namespace", directory=str(self._directory), removed=removed)
        return removed

    def __len__(self) -> int:
        return sum(1 for _ in self.keys())

    def __repr__(self) -> str:
        return f"FileSystemCache(cache_dir={str(self.cache_dir)!r}, namespace={self.namespace!r})"
