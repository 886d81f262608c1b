"""
Event Mirror - Copies event log entries into MongoDB

Only active when MONGODB_URI is configured. The JSON event log stays the
source of truth; a failed insert is logged and the entry is kept locally.
"""

import logging
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient

logger = logging.getLogger(__name__)


class MongoEventMirror:
    """Best-effort mirror of event entries into the `events` collection"""

    COLLECTION = "events"

    def __init__(self, uri: str, db_name: str = "proctoring", collection=None):
        self.uri = uri
        self.db_name = db_name
        self.mongo_client: Optional[AsyncIOMotorClient] = None
        self.collection = collection

    async def connect(self):
        """Connect to MongoDB on first use"""
        if self.collection is None:
            self.mongo_client = AsyncIOMotorClient(self.uri)
            self.collection = self.mongo_client[self.db_name][self.COLLECTION]
            logger.info(f"MongoDB mirror enabled: {self.db_name}.{self.COLLECTION}")

    async def insert(self, entry: Dict[str, Any]) -> bool:
        """Insert a copy of the entry; returns False if MongoDB rejected it"""
        try:
            await self.connect()
            # insert_one adds an ObjectId `_id` to the document it is given
            await self.collection.insert_one(dict(entry))
            return True
        except Exception as e:
            logger.error(f"Mongo insert failed: {e}")
            return False

    async def close(self):
        """Close MongoDB connection"""
        if self.mongo_client:
            self.mongo_client.close()
            self.mongo_client = None
            self.collection = None
