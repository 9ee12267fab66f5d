"""
GSC Data - Paginated stored reporting data as normalized metrics
"""

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from typing import Optional, Dict, Any, List
from app.core.dependencies import get_repository
from app.services.storage import reporting_projection as projection
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.error_handlers import AppError, ValidationError
from app.utils.validators import sanitize_string, validate_date_format
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

VALID_SOURCES = ("gsc", "ahrefs")
MAX_FILTER_LENGTH = 500


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _check_filters(start_date: Optional[str], end_date: Optional[str], source: Optional[str]):
    for value in (start_date, end_date):
        if value and not validate_date_format(value):
            raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")
    if source and source not in VALID_SOURCES:
        raise ValidationError(f"Invalid source '{source}', expected gsc or ahrefs")


async def _query_data(
    repository: ReportingRepository,
    filters: Dict[str, Any],
    page: int,
    limit: int,
    initial_load: bool = False,
    newest_first: bool = False,
) -> Dict[str, Any]:
    _check_filters(filters.get("start_date"), filters.get("end_date"), filters.get("source"))
    for key in ("query", "page"):
        if filters.get(key):
            filters[key] = sanitize_string(filters[key], MAX_FILTER_LENGTH) or None
    mongo_query = projection.build_query(**filters)
    logger.info(f"Reporting data query: {mongo_query} (page {page}, limit {limit})")

    if initial_load:
        documents, total = await repository.sample_across_dates(mongo_query, limit)
    else:
        sort = [("date", -1 if newest_first else 1), ("query", 1)]
        documents, total = await repository.find_documents(mongo_query, page=page, limit=limit, sort=sort)

    metrics = projection.from_documents(documents)
    skip = (page - 1) * limit if not initial_load else 0
    total_pages = (total + limit - 1) // limit

    return {
        "success": True,
        "data": [metric.model_dump(exclude_none=True) for metric in metrics],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "has_more": skip + len(documents) < total,
            "total_pages": total_pages
        },
        "filters": {k: v for k, v in filters.items() if v is not None}
    }


@router.get("/data")
async def get_data(
    site_url: Optional[str] = Query(None, alias="siteUrl"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    query: Optional[str] = Query(None, description="Query substring (case-insensitive)"),
    page_url: Optional[str] = Query(None, alias="pageUrl", description="Page URL substring"),
    source: Optional[str] = Query("gsc", description="gsc or ahrefs"),
    metric_types: Optional[str] = Query(None, alias="metricTypes", description="Comma-separated metric types"),
    dimensions: Optional[str] = Query(None, description="Comma-separated dimensions, e.g. date or date,query,page"),
    import_id: Optional[str] = Query(None, alias="importId"),
    initial_load: bool = Query(False, alias="initialLoad", description="Sample across all stored dates"),
    page: int = Query(1, ge=1),
    limit: int = Query(1000, ge=1, le=25000),
    repository: ReportingRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """
    Stored reporting data as normalized metrics, paginated
    """
    try:
        filters = {
            "site_url": site_url,
            "start_date": start_date,
            "end_date": end_date,
            "query": query,
            "page": page_url,
            "source": source,
            "metric_types": _split(metric_types),
            "import_id": import_id,
            "dimensions": _split(dimensions),
        }
        return await _query_data(repository, filters, page, limit, initial_load=initial_load)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving reporting data: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve data: {str(e)}"
        )


@router.post("/data")
async def query_data(
    site_url: Optional[str] = Body(None, alias="siteUrl"),
    start_date: Optional[str] = Body(None, alias="startDate"),
    end_date: Optional[str] = Body(None, alias="endDate"),
    query: Optional[str] = Body(None),
    page_url: Optional[str] = Body(None, alias="pageUrl"),
    source: Optional[str] = Body("gsc"),
    metric_types: Optional[List[str]] = Body(None, alias="metricTypes"),
    dimensions: Optional[List[str]] = Body(None),
    import_id: Optional[str] = Body(None, alias="importId"),
    page: int = Body(1, ge=1),
    limit: int = Body(1000, ge=1, le=25000),
    repository: ReportingRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """
    Same as GET /data with filters in a JSON body; newest dates first
    """
    try:
        filters = {
            "site_url": site_url,
            "start_date": start_date,
            "end_date": end_date,
            "query": query,
            "page": page_url,
            "source": source,
            "metric_types": metric_types,
            "import_id": import_id,
            "dimensions": dimensions,
        }
        return await _query_data(repository, filters, page, limit, newest_first=True)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving reporting data: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to retrieve data: {str(e)}"
        )
