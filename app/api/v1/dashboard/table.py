"""
Dashboard Table - Query/page rows joined with Ahrefs data, with per-row changes
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from typing import Dict, Any, List
from app.core.config import settings
from app.core.dependencies import get_redis, get_repository
from app.models.metrics import DashboardRequest
from app.services.aggregators.seo_aggregator import SEOAggregator
from app.services.analytics.seo_analytics import SEOAnalytics
from app.services.cache.redis_service import RedisService, build_cache_key
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.date_helpers import resolve_section_ranges
from app.utils.error_handlers import AppError
from app.utils.formatters import export_table_to_csv
from .common import (
    CACHE_PREFIX,
    check_request,
    load_ahrefs_snapshot,
    load_gsc_records,
    range_dict,
)
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

AHREFS_CHANGE_FIELDS = ("previous_traffic", "previous_position", "traffic_change", "position_change")


async def _build_rows(
    request: DashboardRequest,
    repository: ReportingRepository,
) -> Dict[str, Any]:
    ranges = resolve_section_ranges(request.filters)
    primary, comparison = ranges["primary"], ranges["comparison"]

    aggregator = SEOAggregator()
    analytics = SEOAnalytics()

    ahrefs_records = await load_ahrefs_snapshot(repository, aggregator, request)
    gsc_records = await load_gsc_records(repository, aggregator, request, primary)
    rows = aggregator.build_table_rows(gsc_records, ahrefs_records)

    if comparison is not None:
        previous_records = await load_gsc_records(repository, aggregator, request, comparison)
        previous_rows = aggregator.build_table_rows(previous_records)
        analytics.attach_row_changes(rows, previous_rows)

    for row in rows:
        if any(row[field] is not None for field in AHREFS_CHANGE_FIELDS):
            row["ahrefs_changes"] = analytics.calculate_ahrefs_row_changes(row)

    return {
        "rows": rows,
        "primary": primary,
        "comparison": comparison,
        "rankings": analytics.calculate_keyword_rankings(rows),
        "filter_options": aggregator.extract_filter_options(gsc_records + ahrefs_records)
    }


@router.post("/table")
async def get_table(
    request: DashboardRequest,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=5000),
    repository: ReportingRepository = Depends(get_repository),
    cache: RedisService = Depends(get_redis)
) -> Dict[str, Any]:
    """
    Table rows sorted by clicks, paginated
    """
    try:
        check_request(request)
        payload = request.model_dump(mode="json")
        payload.update({"page": page, "limit": limit})
        cache_key = build_cache_key(f"{CACHE_PREFIX}:table", payload)
        cached_data = await cache.get(cache_key)
        if cached_data:
            logger.info("Cache hit for dashboard table")
            return cached_data

        built = await _build_rows(request, repository)
        rows: List[Dict[str, Any]] = built["rows"]

        total = len(rows)
        skip = (page - 1) * limit
        total_pages = (total + limit - 1) // limit

        response = {
            "site_url": request.site_url,
            "date_range": range_dict(built["primary"]),
            "comparison_date_range": range_dict(built["comparison"]),
            "rows": rows[skip:skip + limit],
            "rankings": built["rankings"],
            "filter_options": built["filter_options"],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "has_more": skip + limit < total,
                "total_pages": total_pages
            }
        }

        await cache.set(cache_key, response, ttl=settings.DASHBOARD_CACHE_TTL)
        return response

    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error building dashboard table: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build table data: {str(e)}"
        )


@router.post("/table/export")
async def export_table(
    request: DashboardRequest,
    repository: ReportingRepository = Depends(get_repository)
) -> Response:
    """
    All table rows as a CSV download
    """
    try:
        check_request(request)
        built = await _build_rows(request, repository)
        content = export_table_to_csv(built["rows"])
        filename = f"seo-data-{built['primary'].start_date}-{built['primary'].end_date}.csv"
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error exporting dashboard table: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to export table: {str(e)}"
        )
