"""
Dashboard Chart - Daily metric series with an optional comparison series
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any
from app.core.config import settings
from app.core.dependencies import get_redis, get_repository
from app.models.metrics import DashboardRequest
from app.services.aggregators.seo_aggregator import SEOAggregator
from app.services.cache.redis_service import RedisService, build_cache_key
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.date_helpers import resolve_section_ranges
from app.utils.error_handlers import AppError
from .common import (
    CACHE_PREFIX,
    check_request,
    has_dimension_filter,
    load_ahrefs_snapshot,
    load_gsc_records,
    range_dict,
)
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chart")
async def get_chart(
    request: DashboardRequest,
    repository: ReportingRepository = Depends(get_repository),
    cache: RedisService = Depends(get_redis)
) -> Dict[str, Any]:
    """
    Chart series for the selected metrics, one point per day of the primary range
    """
    try:
        check_request(request)
        cache_key = build_cache_key(f"{CACHE_PREFIX}:chart", request.model_dump(mode="json"))
        cached_data = await cache.get(cache_key)
        if cached_data:
            logger.info("Cache hit for dashboard chart")
            return cached_data

        ranges = resolve_section_ranges(request.filters)
        primary, comparison = ranges["primary"], ranges["comparison"]

        aggregator = SEOAggregator()
        filtered = has_dimension_filter(request)

        ahrefs_records = await load_ahrefs_snapshot(repository, aggregator, request)
        gsc_records = await load_gsc_records(repository, aggregator, request, primary)
        primary_records = aggregator.scope_gsc_records(gsc_records, filtered) + aggregator.filter_records(
            ahrefs_records, date_range=primary
        )

        comparison_records = None
        if comparison is not None:
            previous = await load_gsc_records(repository, aggregator, request, comparison)
            comparison_records = aggregator.scope_gsc_records(previous, filtered) + aggregator.filter_records(
                ahrefs_records, date_range=comparison
            )

        series = aggregator.build_chart_series(
            primary_records,
            request.metrics,
            primary,
            comparison_records=comparison_records,
            comparison_range=comparison
        )

        response = {
            "site_url": request.site_url,
            "metrics": [getattr(m, "value", m) for m in request.metrics],
            "date_range": range_dict(primary),
            "comparison_date_range": range_dict(comparison),
            "series": series
        }

        await cache.set(cache_key, response, ttl=settings.DASHBOARD_CACHE_TTL)
        return response

    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error building dashboard chart: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build chart data: {str(e)}"
        )
