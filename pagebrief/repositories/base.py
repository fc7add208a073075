"""Base class for the MongoDB-backed repositories.

A repository owns exactly one collection.  Subclasses set
``COLLECTION_NAME`` to a value from ``CollectionNames`` and override
``ensure_indexes()``; the lifespan hook in ``main.py`` calls it once at
startup.

Example::

    class PageCacheRepository(BaseRepository):
        COLLECTION_NAME = CollectionNames.PAGE_CACHE

        async def ensure_indexes(self) -> None:
            await self._col.create_index("key", unique=True)
"""

from __future__ import annotations

from abc import ABC
from typing import ClassVar, TypeVar

from motor.motor_asyncio import AsyncIOMotorCollection

from pagebrief.core.database import DatabaseManager

T = TypeVar("T", bound="BaseRepository")


class BaseRepository(ABC):
    """Binds a repository to its Motor collection."""

    COLLECTION_NAME: ClassVar[str]

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._col = collection

    @classmethod
    def from_db(cls: type[T], db: DatabaseManager) -> T:
        """Build the repository from the shared ``DatabaseManager``::

            repo = PageCacheRepository.from_db(db)
        """
        return cls(db.get_collection(cls.COLLECTION_NAME))

    async def ensure_indexes(self) -> None:
        """Create collection indexes.  No-op unless overridden."""
