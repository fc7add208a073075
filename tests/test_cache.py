from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import PyMongoError

from pagebrief.repositories.cache.repository import CacheWriteError, PageCacheRepository


@pytest.fixture
def collection():
    return AsyncMongoMockClient()["pagebrief_test"]["page_cache"]


@pytest.fixture
def repo(collection):
    return PageCacheRepository(collection)


class TestPageCacheRepository:
    async def test_get_missing_returns_none(self, repo):
        assert await repo.get("page:https://example.com/") is None

    async def test_put_then_get(self, repo):
        await repo.put("page:https://example.com/", '{"summary": "hi"}', expiration_ttl=60)
        assert await repo.get("page:https://example.com/") == '{"summary": "hi"}'

    async def test_put_sets_expiry(self, repo, collection):
        before = datetime.now(timezone.utc)
        await repo.put("page:a", "v", expiration_ttl=3600)
        doc = await collection.find_one({"key": "page:a"})
        expires_at = doc["expires_at"]
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        assert expires_at - before >= timedelta(seconds=3599)

    async def test_last_write_wins(self, repo, collection):
        await repo.put("page:a", "first", expiration_ttl=60)
        await repo.put("page:a", "second", expiration_ttl=60)
        assert await repo.get("page:a") == "second"
        assert await collection.count_documents({"key": "page:a"}) == 1

    async def test_expired_entry_is_not_served(self, repo, collection):
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        await collection.insert_one(
            {"key": "page:old", "value": "stale", "cached_at": past, "expires_at": past}
        )
        assert await repo.get("page:old") is None

    async def test_keys_are_exact_match(self, repo):
        await repo.put("page:https://example.com", "v", expiration_ttl=60)
        assert await repo.get("page:https://example.com/") is None

    async def test_ensure_indexes(self, repo):
        await repo.ensure_indexes()  # must not raise

    async def test_write_error_raises_cache_write_error(self):
        collection = MagicMock()
        collection.update_one = AsyncMock(side_effect=PyMongoError("not primary"))
        repo = PageCacheRepository(collection)
        with pytest.raises(CacheWriteError):
            await repo.put("page:a", "v", expiration_ttl=60)
