"""
Credential store - OAuth tokens per session, persisted in the integrations collection
"""

from typing import Any, Dict, Optional
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
import logging

from app.core.config import settings
from app.utils.error_handlers import StorageError

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Stores one token set per (session_id, platform)
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[settings.INTEGRATIONS_COLLECTION]

    async def get(self, session_id: str, platform: str) -> Optional[Dict[str, Any]]:
        try:
            document = await self.collection.find_one(
                {"session_id": session_id, "platform": platform},
                {"_id": 0}
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to load credentials: {str(e)}")
        return document.get("tokens") if document else None

    async def save(self, session_id: str, platform: str, tokens: Dict[str, Any]):
        try:
            await self.collection.update_one(
                {"session_id": session_id, "platform": platform},
                {
                    "$set": {"tokens": tokens, "updated_at": datetime.utcnow()},
                    "$setOnInsert": {"created_at": datetime.utcnow()}
                },
                upsert=True
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to save credentials: {str(e)}")
        logger.info(f"Stored {platform} credentials for session {session_id[:8]}...")

    async def delete(self, session_id: str, platform: str) -> bool:
        try:
            result = await self.collection.delete_one({"session_id": session_id, "platform": platform})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete credentials: {str(e)}")
        return result.deleted_count > 0
