"""
Dashboard Overview - Quick-overview cards with period-over-period comparison
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any
from datetime import datetime
from app.core.config import settings
from app.core.dependencies import get_redis, get_repository
from app.models.metrics import DashboardRequest
from app.services.aggregators.seo_aggregator import SEOAggregator
from app.services.analytics.seo_analytics import SEOAnalytics
from app.services.cache.redis_service import RedisService, build_cache_key
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.date_helpers import resolve_section_ranges
from app.utils.error_handlers import AppError
from app.utils.formatters import format_metric_value
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

# card metric -> summary field
CARD_FIELDS = {
    "clicks": "total_clicks",
    "impressions": "total_impressions",
    "ctr": "avg_ctr",
    "position": "avg_position",
    "traffic": "total_traffic",
    "volume": "total_volume",
}


@router.post("/overview")
async def get_overview(
    request: DashboardRequest,
    repository: ReportingRepository = Depends(get_repository),
    cache: RedisService = Depends(get_redis)
) -> Dict[str, Any]:
    """
    Quick-overview cards for one section filter

    Returns:
    - Summary totals (clicks, impressions, CTR, position, traffic, volume)
    - Comparison summary and percentage changes when comparison is enabled
    - Top pages and top queries for the primary period
    """
    try:
        check_request(request)
        cache_key = build_cache_key(f"{CACHE_PREFIX}:overview", request.model_dump(mode="json"))
        cached_data = await cache.get(cache_key)
        if cached_data:
            logger.info("Cache hit for dashboard overview")
            return cached_data

        ranges = resolve_section_ranges(request.filters)
        primary, comparison = ranges["primary"], ranges["comparison"]

        aggregator = SEOAggregator()
        analytics = SEOAnalytics()
        filtered = has_dimension_filter(request)

        gsc_records = await load_gsc_records(repository, aggregator, request, primary)
        ahrefs_snapshot = await load_ahrefs_snapshot(repository, aggregator, request, apply_filters=False)
        ahrefs_records = aggregator.filter_records(ahrefs_snapshot, urls=request.urls, queries=request.queries)

        summary = aggregator.summarize(aggregator.scope_gsc_records(gsc_records, filtered) + ahrefs_records)
        summary["total_volume"] = aggregator.calculate_total_volume(ahrefs_snapshot, request.urls)

        previous_summary = None
        trends = {}
        if comparison is not None:
            previous_records = await load_gsc_records(repository, aggregator, request, comparison)
            previous_summary = aggregator.summarize(
                aggregator.scope_gsc_records(previous_records, filtered) + ahrefs_records
            )
            previous_summary["total_volume"] = summary["total_volume"]
            trends = analytics.calculate_trends(
                summary,
                previous_summary,
                summary["total_volume"],
                previous_summary["total_volume"]
            )

        cards = []
        for metric in request.metrics:
            metric = getattr(metric, "value", metric)
            field = CARD_FIELDS[metric]
            card = {
                "metric": metric,
                "value": summary.get(field, 0),
                "display": format_metric_value(summary.get(field, 0), metric)
            }
            if comparison is not None:
                card["previous"] = previous_summary.get(field, 0)
                card["change_pct"] = trends.get(metric, {}).get("change_pct", 0.0)
            cards.append(card)

        response = {
            "site_url": request.site_url,
            "date_range": range_dict(primary),
            "comparison_date_range": range_dict(comparison),
            "summary": summary,
            "previous_summary": previous_summary,
            "trends": trends,
            "cards": cards,
            "top_pages": aggregator.get_top_pages(gsc_records, limit=10),
            "top_queries": aggregator.get_top_queries(gsc_records, limit=10),
            "last_updated": datetime.utcnow().isoformat()
        }

        await cache.set(cache_key, response, ttl=settings.DASHBOARD_CACHE_TTL)
        return response

    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error building dashboard overview: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build dashboard overview: {str(e)}"
        )
