"""
Shared MongoDB handle for the conversation store and knowledge retrieval
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.server_api import ServerApi

from src.config import get_settings

logger = logging.getLogger(__name__)


class MongoDBClient:
    """Lazily created motor client, one per process"""

    _client: Optional[AsyncIOMotorClient] = None
    _db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """
        Database named by MONGODB_DATABASE, connecting on first use

        Pool sizes and the server selection timeout come from settings.
        """
        if cls._db is None:
            settings = get_settings()
            cls._client = AsyncIOMotorClient(
                settings.mongodb_uri,
                maxPoolSize=settings.mongodb_max_pool_size,
                minPoolSize=settings.mongodb_min_pool_size,
                serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
                server_api=ServerApi("1"),
            )
            cls._db = cls._client[settings.mongodb_database]
            logger.info(f"MongoDB database '{settings.mongodb_database}' ready")

        return cls._db

    @classmethod
    async def close(cls) -> None:
        if cls._client is not None:
            cls._client.close()
            logger.info("MongoDB connection closed")
        cls._client = None
        cls._db = None
