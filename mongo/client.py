#!/usr/bin/env python3
"""Motor connection manager for the user directory database"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
import asyncio
import logging

from mongo.constants import (
    DATABASE_NAME,
    MONGODB_CONNECTION_STRING,
    MONGO_MAX_POOL_SIZE,
    MONGO_MIN_POOL_SIZE,
    MONGO_SERVER_SELECTION_TIMEOUT_MS,
    USERS_COLLECTION,
)

# Configure logging
logger = logging.getLogger(__name__)


class MongoConnection:
    """Lazily connected Motor client shared by every request in the process"""

    def __init__(self, connection_string: str = MONGODB_CONNECTION_STRING):
        self.connection_string = connection_string
        self.client: AsyncIOMotorClient | None = None
        self.connected = False
        self._connect_lock = asyncio.Lock()

    async def connect(self):
        """Initialize MongoDB connection with a persistent connection pool"""
        try:
            async with self._connect_lock:
                if self.connected and self.client:
                    return

                # Motor maintains persistent connections automatically
                self.client = AsyncIOMotorClient(
                    self.connection_string,
                    maxPoolSize=MONGO_MAX_POOL_SIZE,
                    minPoolSize=MONGO_MIN_POOL_SIZE,
                    maxIdleTimeMS=45000,
                    waitQueueTimeoutMS=5000,
                    serverSelectionTimeoutMS=MONGO_SERVER_SELECTION_TIMEOUT_MS,
                    connectTimeoutMS=10000,
                    socketTimeoutMS=20000,
                )

                # Test connection
                await self.client.admin.command('ping')

                self.connected = True
                logger.info(f"Connected to MongoDB database '{DATABASE_NAME}'")

        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client:
            self.client.close()
        self.connected = False
        self.client = None

    async def get_collection(self, collection_name: str = USERS_COLLECTION, db_name: str = DATABASE_NAME) -> AsyncIOMotorCollection:
        """Return a collection handle, connecting first if needed"""
        if not self.client:
            await self.connect()
        return self.client[db_name][collection_name]


# Global instance shared by the API process
mongo_connection = MongoConnection()
