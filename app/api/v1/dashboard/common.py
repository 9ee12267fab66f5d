"""
Shared loading helpers for the dashboard section endpoints
"""

from typing import Any, Dict, List, Optional
import logging

from app.models.metrics import DashboardRequest, DateRange, MetricSource
from app.services.aggregators.seo_aggregator import SEOAggregator
from app.services.storage import reporting_projection as projection
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.validators import validate_site_url
from app.utils.error_handlers import ValidationError

logger = logging.getLogger(__name__)

CACHE_PREFIX = "dashboard"


def wants_source(request: DashboardRequest, source: MetricSource) -> bool:
    return source in request.sources or source.value in request.sources


def has_dimension_filter(request: DashboardRequest) -> bool:
    return bool(request.urls) or bool(request.queries)


def check_request(request: DashboardRequest):
    if request.site_url and not validate_site_url(request.site_url):
        raise ValidationError(f"Invalid siteUrl: {request.site_url}")


async def load_gsc_records(
    repository: ReportingRepository,
    aggregator: SEOAggregator,
    request: DashboardRequest,
    date_range: DateRange,
) -> List[Dict[str, Any]]:
    """
    GSC records for one period, filtered by the section's URLs and queries
    """
    if not wants_source(request, MetricSource.GSC):
        return []

    query = projection.build_query(
        site_url=request.site_url,
        start_date=date_range.start_date,
        end_date=date_range.end_date,
        source=MetricSource.GSC.value,
    )
    documents = await repository.find_all(query)
    records = aggregator.collapse_records(projection.from_documents(documents))
    filtered = aggregator.filter_records(
        records,
        date_range=date_range,
        urls=request.urls,
        queries=request.queries,
    )
    logger.info(
        f"Loaded {len(filtered)} GSC records for {date_range.start_date}..{date_range.end_date}"
    )
    return filtered


async def load_ahrefs_snapshot(
    repository: ReportingRepository,
    aggregator: SEOAggregator,
    request: Optional[DashboardRequest] = None,
    apply_filters: bool = True,
) -> List[Dict[str, Any]]:
    """
    The stored Ahrefs snapshot (never date-filtered)
    """
    if request is not None and not wants_source(request, MetricSource.AHREFS):
        return []

    documents = await repository.find_all(projection.build_query(source=MetricSource.AHREFS.value))
    records = aggregator.collapse_records(projection.from_documents(documents))
    if apply_filters and request is not None:
        records = aggregator.filter_records(records, urls=request.urls, queries=request.queries)
    return records


def range_dict(date_range: Optional[DateRange]) -> Optional[Dict[str, str]]:
    return date_range.model_dump() if date_range else None
