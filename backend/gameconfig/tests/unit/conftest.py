from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from gameconfig.admin import AdminService
from gameconfig.cache import ConfigCache
from gameconfig.rate_limit import FileRateLimitStorage, FixedWindowRateLimiter
from gameconfig.service import ConfigService
from shared.db.config_store import SqliteConfigStore
from shared.db.connection import Database

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def store(tmp_path: Path):
    db = Database(tmp_path / "test.db")
    db.connect()
    yield SqliteConfigStore(db, max_value_bytes=1000)
    db.close()


@pytest.fixture
def cache(tmp_path: Path, store: SqliteConfigStore) -> ConfigCache:
    return ConfigCache(tmp_path / "cache", store)


@pytest.fixture
def limiter(tmp_path: Path) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(FileRateLimitStorage(tmp_path / "ratelimit"), limit=3, cleanup_probability=0)


@pytest.fixture
def config_service(store: SqliteConfigStore, cache: ConfigCache, limiter: FixedWindowRateLimiter) -> ConfigService:
    return ConfigService(store, cache, limiter, max_value_bytes=1000)


@pytest.fixture
def admin_service(store: SqliteConfigStore, cache: ConfigCache) -> AdminService:
    return AdminService(store, cache)
