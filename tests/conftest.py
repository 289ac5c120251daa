"""
Pytest configuration and fixtures for ff tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from ff.cache.file_cache import FileSystemCache
from ff.config import Settings, clear_settings_cache, get_settings


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide FF_* environment variables pointing at a temp cache root."""
    env_vars = {
        "FF_CACHE_DIR": str(temp_dir / "env-cache"),
        "FF_NAMESPACE": "testing",
        "FF_LOG_LEVEL": "DEBUG",
        "FF_WRITE_ATTEMPTS": "2",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance built from mock_env_vars."""
    clear_settings_cache()
    yield get_settings()
    clear_settings_cache()


@pytest.fixture
def cache_root(temp_dir: Path) -> Path:
    """Storage root for persistent caches."""
    return temp_dir / "cache"


@pytest.fixture
def file_cache(cache_root: Path) -> FileSystemCache:
    """A persistent cache in the default test namespace."""
    return FileSystemCache(cache_dir=cache_root, namespace="tests", write_attempts=1)


class Calculator:
    """Sample target with counted sync and async methods."""

    def __init__(self) -> None:
        self.calls: dict[str, int] = {}
        self.offset = 0
        self.label = "calc"

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def add(self, a, b):
        self._count("add")
        return a + b + self.offset

    def describe(self, **options):
        self._count("describe")
        return {"options": options}

    def nothing(self):
        self._count("nothing")
        return None

    def double_sum(self, a, b):
        self._count("double_sum")
        return self.add(a, b) * 2

    async def fetch(self, item_id):
        self._count("fetch")
        return {"id": item_id, "name": f"item-{item_id}"}

    async def fail(self, reason):
        self._count("fail")
        raise RuntimeError(reason)

    def explode(self):
        self._count("explode")
        raise ValueError("boom")


class Users:
    def __init__(self) -> None:
        self.calls = 0

    def get(self, user_id):
        self.calls += 1
        return {"id": user_id, "kind": "user"}


class Repos:
    def __init__(self) -> None:
        self.calls = 0

    def get(self, repo_id):
        self.calls += 1
        return {"id": repo_id, "kind": "repo"}


class ApiClient:
    """Sample target with nested sub-objects."""

    def __init__(self) -> None:
        self.users = Users()
        self.repos = Repos()
        self.base_url = "https://api.example.com"
        self.retries = 3


@pytest.fixture
def calculator() -> Calculator:
    return Calculator()


@pytest.fixture
def api_client() -> ApiClient:
    return ApiClient()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
