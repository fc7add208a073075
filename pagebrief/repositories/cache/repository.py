from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from pymongo.errors import PyMongoError

from pagebrief.core.collections import CollectionNames
from pagebrief.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CacheWriteError(Exception):
    """Raised when a cache entry could not be persisted."""


class PageCacheRepository(BaseRepository):
    """Key-value store with per-entry expiry on the ``page_cache`` collection.

    Documents have the shape ``{key, value, cached_at, expires_at}``.  The
    TTL index lets MongoDB purge expired entries in the background; since
    that monitor only runs periodically, ``get`` also checks ``expires_at``
    so an expired entry is never served.
    """

    COLLECTION_NAME = CollectionNames.PAGE_CACHE

    async def ensure_indexes(self) -> None:
        await self._col.create_index("key", unique=True)
        await self._col.create_index("expires_at", expireAfterSeconds=0)

    async def get(self, key: str) -> str | None:
        """Return the stored value for *key*, or ``None`` if absent or expired."""
        result = await self._col.find_one({"key": key})
        if result is None:
            return None
        expires_at: datetime = result["expires_at"]
        # PyMongo hands back naive UTC datetimes unless the client is tz-aware.
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            logger.debug("Cache entry %s expired at %s", key, expires_at.isoformat())
            return None
        return result["value"]

    async def put(self, key: str, value: str, *, expiration_ttl: int) -> None:
        """Store *value* under *key* for *expiration_ttl* seconds.

        Concurrent writers on the same key are resolved by whichever
        upsert lands last.

        Raises:
            CacheWriteError: the write did not reach the database.
        """
        now = datetime.now(timezone.utc)
        try:
            await self._col.update_one(
                {"key": key},
                {
                    "$set": {
                        "value": value,
                        "cached_at": now,
                        "expires_at": now + timedelta(seconds=expiration_ttl),
                    }
                },
                upsert=True,
            )
        except PyMongoError as exc:
            raise CacheWriteError(f"Cache write failed for key={key}") from exc
