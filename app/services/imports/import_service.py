"""
Import Service - Runs GSC and Ahrefs import jobs with the replace-on-import strategy
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
import asyncio
import logging
import re
import time

from app.core.config import settings
from app.models.metrics import NormalizedMetric
from app.services.cache.redis_service import RedisService
from app.services.ingest.ahrefs_csv_parser import AhrefsCSVParser
from app.services.ingest.gsc_client import SearchConsoleClient
from app.services.normalizers.metric_normalizer import MetricNormalizer
from app.services.storage import reporting_projection as projection
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.error_handlers import AppError, ImportFailedError, ValidationError
from app.utils.validators import validate_date_format, validate_site_url

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_PATTERN = "dashboard:*"


def generate_import_id(source: str, identifier: str, start_date: Optional[str] = None, end_date: Optional[str] = None) -> str:
    """
    Build an import id: <source>_<identifier>[_<start>_<end>]_<epoch ms>
    """
    clean_identifier = re.sub(r"[^a-zA-Z0-9]", "_", identifier)
    timestamp = int(time.time() * 1000)

    if start_date and end_date:
        start = start_date.replace("-", "")
        end = end_date.replace("-", "")
        return f"{source}_{clean_identifier}_{start}_{end}_{timestamp}"

    return f"{source}_{clean_identifier}_{timestamp}"


def validate_gsc_import_request(site_url: Optional[str], start_date: Optional[str], end_date: Optional[str]):
    if not site_url or not start_date or not end_date:
        raise ValidationError("siteUrl, startDate, and endDate are required")
    if not validate_site_url(site_url):
        raise ValidationError(f"Invalid siteUrl: {site_url}")
    if not validate_date_format(start_date) or not validate_date_format(end_date):
        raise ValidationError("startDate and endDate must be YYYY-MM-DD")
    if start_date > end_date:
        raise ValidationError("startDate must be on or before endDate")


class ImportService:
    """
    Orchestrates one import job: fetch/parse, normalize, replace stored data, record the outcome

    Imports for the same (source, site) run one at a time within this process.
    """

    _locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    def __init__(
        self,
        repository: ReportingRepository,
        cache: Optional[RedisService] = None,
        normalizer: Optional[MetricNormalizer] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.normalizer = normalizer or MetricNormalizer()
        self.timeout_seconds = timeout_seconds or settings.IMPORT_TIMEOUT_SECONDS

    @classmethod
    def _lock_for(cls, source: str, site_url: Optional[str]) -> asyncio.Lock:
        key = (source, site_url or "*")
        if key not in cls._locks:
            cls._locks[key] = asyncio.Lock()
        return cls._locks[key]

    async def import_gsc(
        self,
        client: SearchConsoleClient,
        site_url: str,
        start_date: str,
        end_date: str,
    ) -> Dict[str, Any]:
        """
        Import time-series and query/page data for a GSC property

        Returns:
            {success, import_id, record_count, time_series_count, query_page_count, replaced_records, ...}
        """
        validate_gsc_import_request(site_url, start_date, end_date)

        import_id = generate_import_id("gsc", site_url, start_date, end_date)
        logger.info(f"Starting GSC import {import_id} for {site_url} ({start_date} to {end_date})")

        await self.repository.create_import_record(
            import_id,
            "gsc",
            site_url=site_url,
            start_date=start_date,
            end_date=end_date,
            dimensions=projection.GSC_DIMENSIONS_DETAIL,
        )

        async def fetch() -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
            time_series_rows = await client.fetch_time_series(site_url, start_date, end_date)
            detail_rows = await client.fetch_detail_rows(site_url, start_date, end_date)

            time_series = self.normalizer.normalize_gsc_rows(time_series_rows)
            skipped = self.normalizer.skipped_rows
            details = self.normalizer.normalize_gsc_rows(detail_rows)
            skipped += self.normalizer.skipped_rows

            time_series_docs = projection.to_documents(
                time_series, import_id, site_url, projection.GSC_DIMENSIONS_TIME_SERIES
            )
            detail_docs = projection.to_documents(
                details, import_id, site_url, projection.GSC_DIMENSIONS_DETAIL
            )
            counts = {
                "time_series_count": len(time_series_docs),
                "query_page_count": len(detail_docs),
                "skipped_rows": skipped,
            }
            return time_series_docs + detail_docs, counts

        result = await self._run(import_id, "gsc", site_url, fetch)
        result["site_url"] = site_url
        result["message"] = "Data imported successfully"
        return result

    async def import_ahrefs(self, content: bytes, file_name: str) -> Dict[str, Any]:
        """
        Import an Ahrefs CSV export, replacing all stored Ahrefs data
        """
        import_id = generate_import_id("ahrefs", file_name)
        logger.info(f"Starting Ahrefs import {import_id} from {file_name} ({len(content)} bytes)")

        await self.repository.create_import_record(
            import_id,
            "ahrefs",
            file_name=file_name,
            dimensions=projection.AHREFS_DIMENSIONS,
        )

        async def fetch() -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
            metrics, parse_result = self.parse_ahrefs(content)
            documents = projection.to_documents(metrics, import_id, None, projection.AHREFS_DIMENSIONS)
            counts = {
                "total_rows": parse_result["total_rows"],
                "valid_rows": parse_result["valid_rows"],
                "skipped_rows": self.normalizer.skipped_rows,
                "row_errors": parse_result["errors"],
            }
            return documents, counts

        result = await self._run(import_id, "ahrefs", None, fetch)
        result["file_name"] = file_name
        result["message"] = "Ahrefs data imported successfully"
        return result

    def parse_ahrefs(self, content: bytes) -> Tuple[List[NormalizedMetric], Dict[str, Any]]:
        """
        Parse and normalize an Ahrefs CSV without persisting it
        """
        parse_result = AhrefsCSVParser().parse(content)
        if not parse_result["success"]:
            details = "; ".join(parse_result["errors"][:5])
            raise ValidationError(f"No valid rows found in CSV file. {details}".strip())

        metrics = self.normalizer.normalize_ahrefs_rows(parse_result["rows"])
        return metrics, parse_result

    async def _run(self, import_id: str, source: str, site_url: Optional[str], fetch) -> Dict[str, Any]:
        """
        Fetch first, then delete and insert under the (source, site) lock, bounded by the import timeout
        """
        progress = {"saved": 0, "deleted": 0}
        started = time.time()

        async def job() -> Dict[str, int]:
            documents, counts = await fetch()
            async with self._lock_for(source, site_url):
                progress["deleted"] = await self.repository.clear_existing_data(source, site_url)
                progress["saved"] = await self._insert(documents, progress)
            return counts

        try:
            counts = await asyncio.wait_for(job(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            message = f"Import timed out after {self.timeout_seconds} seconds"
            await self._mark_failed(import_id, message, progress)
            raise ImportFailedError(message, import_id)
        except AppError as e:
            await self._mark_failed(import_id, e.message, progress)
            if progress["deleted"] or progress["saved"]:
                await self._invalidate_cache()
            if isinstance(e, ImportFailedError):
                raise
            if e.status_code >= 500:
                raise ImportFailedError(e.message, import_id)
            raise
        except Exception as e:
            await self._mark_failed(import_id, str(e), progress)
            if progress["deleted"] or progress["saved"]:
                await self._invalidate_cache()
            raise ImportFailedError(str(e), import_id)

        await self.repository.complete_import(import_id, progress["saved"], progress["deleted"] > 0)
        await self._invalidate_cache()

        elapsed_ms = int((time.time() - started) * 1000)
        logger.info(
            f"{source.upper()} import {import_id} completed: {progress['saved']} documents saved, "
            f"{progress['deleted']} replaced, {elapsed_ms}ms"
        )

        result: Dict[str, Any] = {
            "success": True,
            "import_id": import_id,
            "record_count": progress["saved"],
            "replaced_records": progress["deleted"],
            "completed_at": datetime.utcnow().isoformat()
        }
        result.update(counts)
        return result

    async def _insert(self, documents: List[Dict[str, Any]], progress: Dict[str, int]) -> int:
        batch_size = settings.IMPORT_BATCH_SIZE
        for start in range(0, len(documents), batch_size):
            progress["saved"] += await self.repository.insert_in_batches(
                documents[start:start + batch_size], batch_size
            )
        return progress["saved"]

    async def _mark_failed(self, import_id: str, message: str, progress: Dict[str, int]):
        logger.error(f"Import {import_id} failed after {progress['saved']} documents: {message}")
        await self.repository.fail_import(
            import_id,
            message,
            record_count=progress["saved"],
            replaced_previous_data=progress["deleted"] > 0,
        )

    async def _invalidate_cache(self):
        if self.cache is not None:
            await self.cache.delete_pattern(DASHBOARD_CACHE_PATTERN)
