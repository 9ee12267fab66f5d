"""
Clear Data - Delete stored reporting data and import records
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional, Dict, Any
from app.core.dependencies import get_redis, get_repository
from app.services.cache.redis_service import RedisService
from app.services.imports.import_service import DASHBOARD_CACHE_PATTERN
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.error_handlers import AppError, ValidationError
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

CLEAR_SOURCES = ("gsc", "ahrefs", "all")


@router.delete("/clear")
async def clear_data(
    source: Optional[str] = Query(None, description="gsc, ahrefs or all"),
    site_url: Optional[str] = Query(None, alias="siteUrl", description="Limit a GSC clear to one site"),
    repository: ReportingRepository = Depends(get_repository),
    cache: RedisService = Depends(get_redis)
) -> Dict[str, Any]:
    """
    Clear stored data for a source (or everything) together with its import records
    """
    try:
        if source not in CLEAR_SOURCES:
            raise ValidationError("source must be one of: gsc, ahrefs, all")

        logger.info(f"Clearing {source.upper()} data (site: {site_url or 'all sites'})")
        deleted = await repository.clear_data(source, site_url)
        await cache.delete_pattern(DASHBOARD_CACHE_PATTERN)

        logger.info(
            f"Database cleared: {deleted['data_records_deleted']} data records, "
            f"{deleted['import_records_deleted']} import records"
        )

        return {
            "success": True,
            "data_records_deleted": deleted["data_records_deleted"],
            "import_records_deleted": deleted["import_records_deleted"],
            "source": source,
            "site_url": site_url if source == "gsc" else None,
            "message": f"Successfully cleared {'all' if source == 'all' else source.upper()} data from database"
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error clearing data: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to clear database: {str(e)}"
        )
