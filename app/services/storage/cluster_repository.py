"""
Cluster repository - performance clusters per session
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError
import logging
import uuid

from app.core.config import settings
from app.utils.error_handlers import NotFoundError, StorageError

logger = logging.getLogger(__name__)


def generate_cluster_id() -> str:
    return f"cluster_{uuid.uuid4().hex[:12]}"


def _to_response(document: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": document["clusterId"],
        "name": document["name"],
        "urls": document.get("urls", []),
        "created_at": document["createdAt"].isoformat(),
        "updated_at": document["updatedAt"].isoformat()
    }


class ClusterRepository:
    """
    Reads and writes the performance_clusters collection, scoped by session
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[settings.CLUSTERS_COLLECTION]

    async def list_clusters(self, session_id: str) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find({"sessionId": session_id}, {"_id": 0}).sort("createdAt", ASCENDING)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            raise StorageError(f"Failed to load clusters: {str(e)}")
        return [_to_response(document) for document in documents]

    async def get_cluster(self, session_id: str, cluster_id: str) -> Dict[str, Any]:
        try:
            document = await self.collection.find_one(
                {"sessionId": session_id, "clusterId": cluster_id},
                {"_id": 0}
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to load cluster: {str(e)}")
        if document is None:
            raise NotFoundError(f"Cluster not found: {cluster_id}")
        return _to_response(document)

    async def create_cluster(self, session_id: str, name: str, urls: List[str]) -> Dict[str, Any]:
        now = datetime.utcnow()
        document = {
            "clusterId": generate_cluster_id(),
            "sessionId": session_id,
            "name": name,
            "urls": urls,
            "createdAt": now,
            "updatedAt": now
        }
        try:
            await self.collection.insert_one(dict(document))
        except PyMongoError as e:
            raise StorageError(f"Failed to create cluster: {str(e)}")

        logger.info(f"Created cluster {document['clusterId']} '{name}' with {len(urls)} URLs")
        return _to_response(document)

    async def update_cluster(
        self,
        session_id: str,
        cluster_id: str,
        name: Optional[str] = None,
        urls: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"updatedAt": datetime.utcnow()}
        if name is not None:
            fields["name"] = name
        if urls is not None:
            fields["urls"] = urls

        try:
            result = await self.collection.update_one(
                {"sessionId": session_id, "clusterId": cluster_id},
                {"$set": fields}
            )
        except PyMongoError as e:
            raise StorageError(f"Failed to update cluster: {str(e)}")
        if result.matched_count == 0:
            raise NotFoundError(f"Cluster not found: {cluster_id}")

        return await self.get_cluster(session_id, cluster_id)

    async def delete_cluster(self, session_id: str, cluster_id: str):
        try:
            result = await self.collection.delete_one({"sessionId": session_id, "clusterId": cluster_id})
        except PyMongoError as e:
            raise StorageError(f"Failed to delete cluster: {str(e)}")
        if result.deleted_count == 0:
            raise NotFoundError(f"Cluster not found: {cluster_id}")
        logger.info(f"Deleted cluster {cluster_id}")

    async def clear_clusters(self, session_id: str) -> int:
        try:
            result = await self.collection.delete_many({"sessionId": session_id})
        except PyMongoError as e:
            raise StorageError(f"Failed to clear clusters: {str(e)}")
        logger.info(f"Cleared {result.deleted_count} clusters for session {session_id[:8]}...")
        return result.deleted_count
