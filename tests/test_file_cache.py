"""
Tests for the persistent file cache.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from ff.cache.base import MISSING
from ff.cache.file_cache import FileSystemCache, entry_filename
from ff.config import DEFAULT_WRITE_ATTEMPTS, Settings
from ff.exceptions import CacheReadError, CacheWriteError, SerializationError, StorageUnavailableError


class TestConstruction:
    """Tests for directory creation and defaults."""

    def test_creates_nested_directory(self, temp_dir: Path) -> None:
        """Test that missing parents are created."""
        root = temp_dir / "a" / "b"
        cache = FileSystemCache(cache_dir=root, namespace="ns")

        assert cache.directory == (root / "ns").absolute()
        assert cache.directory.is_dir()

    def test_existing_directory_is_fine(self, cache_root: Path) -> None:
        """Test that constructing twice does not fail."""
        FileSystemCache(cache_dir=cache_root, namespace="ns")
        FileSystemCache(cache_dir=cache_root, namespace="ns")

    def test_defaults_from_settings(self, mock_settings: Settings) -> None:
        """Test that FF_CACHE_DIR and FF_NAMESPACE are used when not given."""
        cache = FileSystemCache()

        assert cache.namespace == "testing"
        assert cache.directory == (mock_settings.CACHE_DIR / "testing").absolute()
        assert cache.write_attempts == 2

    def test_explicit_arguments_win(self, mock_settings: Settings, cache_root: Path) -> None:
        """Test that constructor arguments override settings."""
        cache = FileSystemCache(cache_dir=cache_root, namespace="mine")
        assert cache.directory == (cache_root / "mine").absolute()

    def test_explicit_arguments_ignore_invalid_settings(self, cache_root: Path) -> None:
        """Test that an unrelated bad FF_* variable does not break explicit construction."""
        with patch.dict(os.environ, {"FF_LOG_LEVEL": "LOUD"}):
            cache = FileSystemCache(cache_dir=cache_root, namespace="mine")

        assert cache.write_attempts == DEFAULT_WRITE_ATTEMPTS
        cache.set("k", 1)
        assert cache.get("k") == 1

    def test_default_namespace(self, cache_root: Path) -> None:
        """Test the built-in default namespace."""
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("FF_NAMESPACE", None)
            cache = FileSystemCache(cache_dir=cache_root)
        assert cache.namespace == "default"

    def test_unavailable_storage_raises(self, temp_dir: Path) -> None:
        """Test that a file in place of the root makes storage unavailable."""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(StorageUnavailableError) as exc_info:
            FileSystemCache(cache_dir=blocker, namespace="ns")

        assert "directory" in exc_info.value.context

    def test_mkdir_permission_error_raises(self, cache_root: Path) -> None:
        """Test that OS errors on creation surface as StorageUnavailableError."""
        with patch.object(Path, "mkdir", side_effect=PermissionError("denied")):
            with pytest.raises(StorageUnavailableError) as exc_info:
                FileSystemCache(cache_dir=cache_root, namespace="ns")
        assert "denied" in exc_info.value.context["reason"]

    @pytest.mark.parametrize("namespace", ["", "..", "a/b", "a\\b"])
    def test_invalid_namespace_rejected(self, cache_root: Path, namespace: str) -> None:
        """Test that namespaces must be a single path segment."""
        with pytest.raises(ValueError):
            FileSystemCache(cache_dir=cache_root, namespace=namespace)


class TestRoundTrip:
    """Tests for set/get across instances."""

    @pytest.mark.parametrize(
        "value",
        [
            42,
            -1.25,
            "text with ünïcode",
            True,
            None,
            [1, "two", [3.0, None]],
            {"nested": {"list": [1, 2, {"deep": False}], "n": 0}},
        ],
    )
    def test_new_instance_reads_value(self, cache_root: Path, value: object) -> None:
        """Test that a fresh backend on the same directory sees the value."""
        FileSystemCache(cache_dir=cache_root, namespace="rt").set("k", value)

        reader = FileSystemCache(cache_dir=cache_root, namespace="rt")

        assert reader.has("k") is True
        assert reader.get("k") == value

    def test_get_absent_returns_missing(self, file_cache: FileSystemCache) -> None:
        """Test that a missing file reads as MISSING."""
        assert file_cache.get("absent") is MISSING
        assert file_cache.has("absent") is False

    def test_overwrite(self, file_cache: FileSystemCache) -> None:
        """Test that set replaces an existing entry."""
        file_cache.set("k", 1)
        file_cache.set("k", {"v": 2})
        assert file_cache.get("k") == {"v": 2}

    def test_tuples_read_back_as_lists(self, file_cache: FileSystemCache) -> None:
        """Test the documented JSON limitation."""
        file_cache.set("k", (1, 2))
        assert file_cache.get("k") == [1, 2]

    def test_content_is_human_readable(self, file_cache: FileSystemCache) -> None:
        """Test that entries are indented JSON with sorted keys."""
        file_cache.set("k", {"b": 1, "a": 2})
        text = file_cache.entry_path("k").read_text(encoding="utf-8")
        assert text == '{\n  "a": 2,\n  "b": 1\n}\n'


class TestFileNaming:
    """Tests for key to file name mapping."""

    def test_safe_key_used_directly(self) -> None:
        """Test that hex digest keys are used verbatim."""
        key = "ab" * 32
        assert entry_filename(key) == key + ".json"

    def test_unsafe_key_hashed(self) -> None:
        """Test that path-like keys are hashed."""
        expected = "~" + hashlib.sha256(b"../escape").hexdigest() + ".json"
        assert entry_filename("../escape") == expected
        assert entry_filename(".hidden") != ".hidden.json"

    def test_hashed_name_cannot_collide_with_safe_key(self, file_cache: FileSystemCache) -> None:
        """Test that an unsafe key and the safe key equal to its digest use different files."""
        unsafe = "../escape"
        digest = hashlib.sha256(unsafe.encode("utf-8")).hexdigest()

        assert entry_filename(unsafe) != entry_filename(digest)

        file_cache.set(unsafe, "unsafe")
        file_cache.set(digest, "digest")
        assert file_cache.get(unsafe) == "unsafe"
        assert file_cache.get(digest) == "digest"
        assert len(file_cache) == 2

    def test_trailing_newline_is_hashed(self) -> None:
        """Test that a key ending in a newline is not used verbatim."""
        assert entry_filename("abc\n").startswith("~")

    def test_naming_is_deterministic(self, cache_root: Path) -> None:
        """Test that two instances map a key to the same file."""
        first = FileSystemCache(cache_dir=cache_root, namespace="n")
        second = FileSystemCache(cache_dir=cache_root, namespace="n")
        assert first.entry_path("some key") == second.entry_path("some key")

    def test_unsafe_key_stays_inside_directory(self, file_cache: FileSystemCache) -> None:
        """Test that keys cannot escape the namespace directory."""
        file_cache.set("../../outside", 1)
        assert file_cache.entry_path("../../outside").parent == file_cache.directory
        assert file_cache.get("../../outside") == 1


class TestNamespaces:
    """Tests for namespace isolation."""

    def test_namespaces_do_not_share_entries(self, cache_root: Path) -> None:
        """Test that the same key in two namespaces is independent."""
        first = FileSystemCache(cache_dir=cache_root, namespace="one")
        second = FileSystemCache(cache_dir=cache_root, namespace="two")

        first.set("k", "first")

        assert first.has("k") is True
        assert second.has("k") is False
        assert second.get("k") is MISSING

        second.set("k", "second")
        assert first.get("k") == "first"


class TestFailures:
    """Tests for corrupt entries and write failures."""

    def test_corrupt_entry_is_missing(self, file_cache: FileSystemCache) -> None:
        """Test that malformed JSON reads as a miss instead of raising."""
        file_cache.entry_path("k").write_text("{not json", encoding="utf-8")

        assert file_cache.has("k") is True
        assert file_cache.get("k") is MISSING

    def test_unreadable_entry_raises_read_error(self, file_cache: FileSystemCache) -> None:
        """Test that non-corruption read failures raise CacheReadError."""
        file_cache.entry_path("k").mkdir()

        with pytest.raises(CacheReadError):
            file_cache.get("k")

    def test_unserializable_value_writes_nothing(self, file_cache: FileSystemCache) -> None:
        """Test that a serialization failure leaves no entry behind."""
        with pytest.raises(SerializationError):
            file_cache.set("k", {"f": object()})

        assert file_cache.has("k") is False
        assert list(file_cache.directory.iterdir()) == []

    def test_circular_value_writes_nothing(self, file_cache: FileSystemCache) -> None:
        """Test that a cyclic value is rejected without a partial file."""
        cyclic: list = []
        cyclic.append(cyclic)

        with pytest.raises(SerializationError):
            file_cache.set("k", cyclic)

        assert list(file_cache.directory.iterdir()) == []

    def test_failed_write_keeps_previous_entry(self, file_cache: FileSystemCache) -> None:
        """Test that a failed write neither corrupts nor leaves temp files."""
        file_cache.set("k", "old")

        with patch("ff.cache.file_cache.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(CacheWriteError) as exc_info:
                file_cache.set("k", "new")

        assert exc_info.value.context["attempts"] == 1
        assert file_cache.get("k") == "old"
        assert sorted(p.name for p in file_cache.directory.iterdir()) == ["k.json"]

    def test_transient_write_failure_is_retried(self, cache_root: Path) -> None:
        """Test that tenacity retries a failed write."""
        cache = FileSystemCache(cache_dir=cache_root, namespace="retry", write_attempts=3)
        real_replace = os.replace
        failures = iter([OSError("busy")])

        def flaky_replace(src: str, dst: Path) -> None:
            error = next(failures, None)
            if error is not None:
                raise error
            real_replace(src, dst)

        with patch("ff.cache.file_cache.wait_exponential", return_value=lambda retry_state: 0):
            with patch("ff.cache.file_cache.os.replace", side_effect=flaky_replace):
                cache.set("k", 1)

        assert cache.get("k") == 1


class TestManagement:
    """Tests for delete, keys and clear."""

    def test_keys_lists_entries(self, file_cache: FileSystemCache) -> None:
        """Test that keys yields entry names sorted."""
        file_cache.set("b", 1)
        file_cache.set("a", 2)
        assert list(file_cache.keys()) == ["a", "b"]
        assert len(file_cache) == 2

    def test_entry_names_for_hashed_keys(self, file_cache: FileSystemCache) -> None:
        """Test that names yielded by keys() can be read and removed."""
        file_cache.set("a key with spaces", {"v": 1})
        [name] = list(file_cache.keys())

        assert name == file_cache.entry_name("a key with spaces")
        assert name.startswith("~")
        assert file_cache.has_entry(name)
        assert file_cache.load_entry(name) == {"v": 1}
        assert file_cache.remove_entry(name) is True
        assert file_cache.has("a key with spaces") is False

    def test_invalid_entry_name(self, file_cache: FileSystemCache) -> None:
        """Test that names outside the naming scheme are rejected."""
        assert file_cache.has_entry("../x") is False
        with pytest.raises(ValueError):
            file_cache.named_path("../x")

    def test_clear_removes_hashed_entries(self, file_cache: FileSystemCache) -> None:
        """Test that clear also deletes entries stored under hashed names."""
        file_cache.set("plain", 1)
        file_cache.set("not/plain", 2)

        assert file_cache.clear() == 2
        assert len(file_cache) == 0

    def test_delete(self, file_cache: FileSystemCache) -> None:
        """Test that delete reports whether an entry existed."""
        file_cache.set("k", 1)
        assert file_cache.delete("k") is True
        assert file_cache.delete("k") is False
        assert file_cache.has("k") is False

    def test_clear_only_affects_namespace(self, cache_root: Path) -> None:
        """Test that clear leaves other namespaces alone."""
        first = FileSystemCache(cache_dir=cache_root, namespace="one")
        second = FileSystemCache(cache_dir=cache_root, namespace="two")
        first.set("a", 1)
        first.set("b", 2)
        second.set("a", 3)

        assert first.clear() == 2
        assert len(first) == 0
        assert second.get("a") == 3
