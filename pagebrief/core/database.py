from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from pagebrief.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Process-wide holder of the Motor client backing the page cache.

    Use the module-level ``db`` instance; constructing the class again
    returns the same object.

    Lifecycle::

        await db.connect()     # application startup
        col = db.get_collection(CollectionNames.PAGE_CACHE)
        await db.disconnect()  # application shutdown
    """

    _instance: DatabaseManager | None = None
    _client: AsyncIOMotorClient | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Create the Motor client and ping the server once."""
        self._client = AsyncIOMotorClient(
            settings.mongo_uri,
            maxPoolSize=settings.mongo_max_pool_size,
        )
        await self._client.admin.command("ping")
        logger.info("Page cache store connected (%s/%s).", settings.mongo_uri, settings.mongo_db)

    async def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Page cache store disconnected.")

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        if self._client is None:
            raise RuntimeError("Cache store is not connected; call db.connect() first.")
        return self._client[settings.mongo_db][name]


#: Shared instance used by the lifespan hooks and route dependencies.
db: DatabaseManager = DatabaseManager()
