"""
Reporting repository - MongoDB access for reporting documents and import records
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
import logging

from app.core.config import settings
from app.utils.error_handlers import StorageError

logger = logging.getLogger(__name__)

IMPORT_STATUS_PENDING = "pending"
IMPORT_STATUS_COMPLETED = "completed"
IMPORT_STATUS_FAILED = "failed"


class ReportingRepository:
    """
    Reads and writes the reporting_data and data_imports collections
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.reporting = db[settings.REPORTING_COLLECTION]
        self.imports = db[settings.IMPORTS_COLLECTION]

    # Reporting documents

    async def clear_existing_data(self, source: str, site_url: Optional[str] = None) -> int:
        """
        Delete all documents for a source before a new import (replace on import)

        The site filter only applies to GSC; Ahrefs data is replaced wholesale.
        """
        query: Dict[str, Any] = {"source": source}
        if site_url and source == "gsc":
            query["siteUrl"] = site_url

        try:
            result = await self.reporting.delete_many(query)
        except PyMongoError as e:
            raise StorageError(f"Failed to clear existing {source} data: {str(e)}")

        logger.info(
            f"Cleared existing {source.upper()} data: {result.deleted_count} documents "
            f"(site: {site_url or 'all'})"
        )
        return result.deleted_count

    async def insert_in_batches(self, documents: List[Dict[str, Any]], batch_size: Optional[int] = None) -> int:
        """
        Insert documents in fixed-size batches

        Batches already written stay committed when a later batch fails.
        """
        batch_size = batch_size or settings.IMPORT_BATCH_SIZE
        saved_count = 0

        for start in range(0, len(documents), batch_size):
            batch = documents[start:start + batch_size]
            try:
                await self.reporting.insert_many(batch)
            except PyMongoError as e:
                raise StorageError(
                    f"Failed to save batch at offset {start} ({saved_count} documents already saved): {str(e)}"
                )
            saved_count += len(batch)
            logger.info(f"Saved batch: {saved_count}/{len(documents)} documents")

        return saved_count

    async def find_documents(
        self,
        query: Dict[str, Any],
        page: int = 1,
        limit: int = 1000,
        sort: Optional[List[Tuple[str, int]]] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Paginated find

        Returns:
            (documents, total matching count)
        """
        skip = (page - 1) * limit
        sort = sort or [("date", 1), ("query", 1)]
        try:
            cursor = self.reporting.find(query, {"_id": 0}).sort(sort).skip(skip).limit(limit)
            documents = await cursor.to_list(length=limit)
            total = await self.reporting.count_documents(query)
        except PyMongoError as e:
            raise StorageError(f"Failed to query reporting data: {str(e)}")
        return documents, total

    async def find_all(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Fetch every matching document (used by dashboard aggregation)"""
        try:
            cursor = self.reporting.find(query, {"_id": 0}).sort("date", 1)
            return await cursor.to_list(length=None)
        except PyMongoError as e:
            raise StorageError(f"Failed to query reporting data: {str(e)}")

    async def distinct_dates(self, query: Dict[str, Any]) -> List[str]:
        try:
            dates = await self.reporting.distinct("date", query)
        except PyMongoError as e:
            raise StorageError(f"Failed to list dates: {str(e)}")
        return sorted(dates)

    async def distinct_urls(self, query: Dict[str, Any]) -> List[str]:
        try:
            urls = await self.reporting.distinct("url", query)
        except PyMongoError as e:
            raise StorageError(f"Failed to list URLs: {str(e)}")
        return sorted(url for url in urls if url)

    async def sample_across_dates(self, query: Dict[str, Any], limit: int) -> Tuple[List[Dict[str, Any]], int]:
        """
        Representative sample spread over every stored date (initial dashboard load)
        """
        dates = await self.distinct_dates(query)
        if not dates:
            return [], 0

        per_date = max(1, limit // len(dates))
        sample: List[Dict[str, Any]] = []
        try:
            for day in dates:
                cursor = self.reporting.find({**query, "date": day}, {"_id": 0}).limit(per_date)
                sample.extend(await cursor.to_list(length=per_date))
                if len(sample) >= limit:
                    break
            total = await self.reporting.count_documents(query)
        except PyMongoError as e:
            raise StorageError(f"Failed to sample reporting data: {str(e)}")

        logger.info(f"Sampled {len(sample[:limit])} documents across {len(dates)} dates")
        return sample[:limit], total

    async def clear_data(self, source: str, site_url: Optional[str] = None) -> Dict[str, int]:
        """
        Clear reporting documents and import records

        source: gsc, ahrefs or all
        """
        if source == "all":
            data_query: Dict[str, Any] = {}
            import_query: Dict[str, Any] = {}
        else:
            data_query = {"source": source}
            import_query = {"source": source}
            if site_url and source == "gsc":
                data_query["siteUrl"] = site_url
                import_query["siteUrl"] = site_url

        try:
            data_result = await self.reporting.delete_many(data_query)
            import_result = await self.imports.delete_many(import_query)
        except PyMongoError as e:
            raise StorageError(f"Failed to clear database: {str(e)}")

        return {
            "data_records_deleted": data_result.deleted_count,
            "import_records_deleted": import_result.deleted_count
        }

    # Import records

    async def create_import_record(
        self,
        import_id: str,
        source: str,
        site_url: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        file_name: Optional[str] = None,
        dimensions: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        record = {
            "importId": import_id,
            "source": source,
            "siteUrl": site_url,
            "startDate": start_date,
            "endDate": end_date,
            "fileName": file_name,
            "dimensions": dimensions or [],
            "recordCount": 0,
            "status": IMPORT_STATUS_PENDING,
            "createdAt": datetime.utcnow(),
            "completedAt": None,
            "error": None,
            "replacedPreviousData": False,
        }
        try:
            await self.imports.insert_one(dict(record))
        except PyMongoError as e:
            raise StorageError(f"Failed to create import record: {str(e)}")
        return record

    async def complete_import(self, import_id: str, record_count: int, replaced_previous_data: bool):
        await self._update_import(import_id, {
            "status": IMPORT_STATUS_COMPLETED,
            "recordCount": record_count,
            "replacedPreviousData": replaced_previous_data,
            "completedAt": datetime.utcnow(),
        })

    async def fail_import(self, import_id: str, error: str, record_count: int = 0, replaced_previous_data: bool = False):
        await self._update_import(import_id, {
            "status": IMPORT_STATUS_FAILED,
            "error": error,
            "recordCount": record_count,
            "replacedPreviousData": replaced_previous_data,
            "completedAt": datetime.utcnow(),
        })

    async def _update_import(self, import_id: str, fields: Dict[str, Any]):
        try:
            await self.imports.update_one({"importId": import_id}, {"$set": fields})
        except PyMongoError as e:
            raise StorageError(f"Failed to update import record {import_id}: {str(e)}")

    async def get_import(self, import_id: str) -> Optional[Dict[str, Any]]:
        return await self.imports.find_one({"importId": import_id}, {"_id": 0})

    async def list_imports(
        self,
        site_url: Optional[str] = None,
        source: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if site_url:
            query["siteUrl"] = site_url
        if source:
            query["source"] = source
        if status:
            query["status"] = status

        try:
            cursor = self.imports.find(query, {"_id": 0}).sort("createdAt", -1).limit(limit)
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise StorageError(f"Failed to retrieve import history: {str(e)}")
