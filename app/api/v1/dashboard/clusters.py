"""
Dashboard Clusters - Performance clusters (named URL groups) and their combined metrics
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional, Dict, Any, List
from datetime import datetime
from app.core.config import settings
from app.core.dependencies import get_cluster_repository, get_redis, get_repository, get_session_id
from app.models.clusters import ClusterCreate, ClusterUpdate
from app.models.metrics import DashboardRequest, MetricSource
from app.services.aggregators.seo_aggregator import SEOAggregator
from app.services.analytics.seo_analytics import SEOAnalytics
from app.services.cache.redis_service import RedisService, build_cache_key
from app.services.storage import reporting_projection as projection
from app.services.storage.cluster_repository import ClusterRepository
from app.services.storage.reporting_repository import ReportingRepository
from app.utils.date_helpers import resolve_section_ranges
from app.utils.error_handlers import AppError, ValidationError
from app.utils.validators import validate_site_url
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


def _check_site_url(site_url: Optional[str]):
    if site_url and not validate_site_url(site_url):
        raise ValidationError(f"Invalid siteUrl: {site_url}")


def _selected_urls(cluster: Dict[str, Any], requested: Optional[List[str]]) -> List[str]:
    if not requested:
        return cluster["urls"]
    unknown = [url for url in requested if url not in cluster["urls"]]
    if unknown:
        raise ValidationError(f"URLs not in cluster '{cluster['name']}': {', '.join(unknown)}")
    return list(dict.fromkeys(requested))


def _url_breakdown(
    aggregator: SEOAggregator,
    analytics: SEOAnalytics,
    url: str,
    gsc_records: List[Dict[str, Any]],
    ahrefs_records: List[Dict[str, Any]],
    previous_records: Optional[List[Dict[str, Any]]],
) -> Dict[str, Any]:
    gsc_url = aggregator.filter_cluster_records(gsc_records, [url])
    ahrefs_url = aggregator.filter_cluster_records(ahrefs_records, [url])

    rows = aggregator.build_table_rows(gsc_url, ahrefs_url)
    if previous_records is not None:
        previous_rows = aggregator.build_table_rows(aggregator.filter_cluster_records(previous_records, [url]))
        analytics.attach_row_changes(rows, previous_rows)

    summary = aggregator.summarize(gsc_url + ahrefs_url)
    summary["total_volume"] = aggregator.calculate_total_volume(ahrefs_url)
    return {
        "url": url,
        "summary": summary,
        "rows": rows,
        "row_count": len(rows)
    }


@router.get("/clusters")
async def list_clusters(
    site_url: Optional[str] = Query(None, alias="siteUrl"),
    include_stats: bool = Query(True, alias="includeStats", description="All-time GSC clicks and impressions per cluster"),
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository),
    repository: ReportingRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """
    The session's clusters, with all-time GSC totals for the cluster cards
    """
    try:
        _check_site_url(site_url)
        items = await clusters.list_clusters(session_id)

        if include_stats and items:
            aggregator = SEOAggregator()
            query = projection.build_query(
                site_url=site_url,
                source=MetricSource.GSC.value,
                dimensions=projection.GSC_DIMENSIONS_DETAIL
            )
            documents = await repository.find_all(query)
            records = aggregator.collapse_records(projection.from_documents(documents))

            for cluster in items:
                summary = aggregator.summarize(aggregator.filter_cluster_records(records, cluster["urls"]))
                cluster["stats"] = {
                    "total_clicks": summary["total_clicks"],
                    "total_impressions": summary["total_impressions"],
                    "data_points": summary["record_count"]
                }

        return {
            "clusters": items,
            "count": len(items)
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error listing clusters: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list clusters: {str(e)}"
        )


@router.post("/clusters")
async def create_cluster(
    cluster: ClusterCreate,
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository)
) -> Dict[str, Any]:
    """
    Create a cluster from a name and a list of URLs

    URL entries may hold several URLs separated by newlines, commas or semicolons.
    """
    try:
        created = await clusters.create_cluster(session_id, cluster.name, cluster.urls)
        return {
            "success": True,
            "cluster": created,
            "message": "Cluster created successfully"
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating cluster: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create cluster: {str(e)}"
        )


@router.delete("/clusters")
async def clear_clusters(
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository)
) -> Dict[str, Any]:
    """
    Delete every cluster of the session
    """
    try:
        deleted = await clusters.clear_clusters(session_id)
        return {
            "success": True,
            "clusters_deleted": deleted
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error clearing clusters: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to clear clusters: {str(e)}"
        )


@router.get("/clusters/available-urls")
async def get_available_urls(
    site_url: Optional[str] = Query(None, alias="siteUrl"),
    repository: ReportingRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """
    Every stored page URL (GSC for the site plus the Ahrefs snapshot) to pick cluster members from
    """
    try:
        _check_site_url(site_url)
        gsc_urls = await repository.distinct_urls(
            projection.build_query(site_url=site_url, source=MetricSource.GSC.value)
        )
        ahrefs_urls = await repository.distinct_urls(
            projection.build_query(source=MetricSource.AHREFS.value)
        )
        urls = sorted(set(gsc_urls) | set(ahrefs_urls))
        return {
            "urls": urls,
            "count": len(urls)
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error listing cluster URLs: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list available URLs: {str(e)}"
        )


@router.get("/clusters/{cluster_id}")
async def get_cluster(
    cluster_id: str,
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository)
) -> Dict[str, Any]:
    try:
        return await clusters.get_cluster(session_id, cluster_id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error loading cluster: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load cluster: {str(e)}"
        )


@router.patch("/clusters/{cluster_id}")
async def update_cluster(
    cluster_id: str,
    update: ClusterUpdate,
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository)
) -> Dict[str, Any]:
    """
    Rename a cluster or replace its URLs
    """
    try:
        if update.name is None and update.urls is None:
            raise ValidationError("Nothing to update: provide name or urls")
        updated = await clusters.update_cluster(session_id, cluster_id, name=update.name, urls=update.urls)
        return {
            "success": True,
            "cluster": updated,
            "message": "Cluster updated successfully"
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating cluster: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update cluster: {str(e)}"
        )


@router.delete("/clusters/{cluster_id}")
async def delete_cluster(
    cluster_id: str,
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository)
) -> Dict[str, Any]:
    try:
        await clusters.delete_cluster(session_id, cluster_id)
        return {
            "success": True,
            "cluster_id": cluster_id,
            "message": "Cluster deleted successfully"
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting cluster: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete cluster: {str(e)}"
        )


@router.post("/clusters/{cluster_id}/summary")
async def get_cluster_summary(
    cluster_id: str,
    request: DashboardRequest,
    session_id: str = Depends(get_session_id),
    clusters: ClusterRepository = Depends(get_cluster_repository),
    repository: ReportingRepository = Depends(get_repository),
    cache: RedisService = Depends(get_redis)
) -> Dict[str, Any]:
    """
    Combined performance of a cluster for one section filter

    `urls` in the body narrows the analysis to a subset of the cluster's URLs.

    Returns:
    - Cluster summary (GSC totals, Ahrefs traffic and volume) with comparison and trends
    - Daily chart series for the selected metrics
    - Per-URL summaries and query rows
    """
    try:
        check_request(request)
        cluster = await clusters.get_cluster(session_id, cluster_id)
        selected = _selected_urls(cluster, request.urls)

        cache_key = build_cache_key(f"{CACHE_PREFIX}:cluster", {
            "cluster_id": cluster_id,
            "updated_at": cluster["updated_at"],
            "selected_urls": selected,
            "request": request.model_dump(mode="json")
        })
        cached_data = await cache.get(cache_key)
        if cached_data:
            logger.info(f"Cache hit for cluster summary {cluster_id}")
            return cached_data

        ranges = resolve_section_ranges(request.filters)
        primary, comparison = ranges["primary"], ranges["comparison"]

        aggregator = SEOAggregator()
        analytics = SEOAnalytics()
        unscoped = request.model_copy(update={"urls": None})

        gsc_records = aggregator.filter_cluster_records(
            await load_gsc_records(repository, aggregator, unscoped, primary), selected
        )
        ahrefs_records = aggregator.filter_cluster_records(
            await load_ahrefs_snapshot(repository, aggregator, unscoped), selected
        )

        summary = aggregator.summarize(gsc_records + ahrefs_records)
        summary["total_volume"] = aggregator.calculate_total_volume(ahrefs_records)

        previous_records = None
        previous_summary = None
        comparison_chart_records = None
        trends = {}
        if comparison is not None:
            previous_records = aggregator.filter_cluster_records(
                await load_gsc_records(repository, aggregator, unscoped, comparison), selected
            )
            previous_summary = aggregator.summarize(previous_records + ahrefs_records)
            previous_summary["total_volume"] = summary["total_volume"]
            trends = analytics.calculate_trends(
                summary,
                previous_summary,
                summary["total_volume"],
                previous_summary["total_volume"]
            )
            comparison_chart_records = previous_records + aggregator.filter_records(
                ahrefs_records, date_range=comparison
            )

        series = aggregator.build_chart_series(
            gsc_records + aggregator.filter_records(ahrefs_records, date_range=primary),
            request.metrics,
            primary,
            comparison_records=comparison_chart_records,
            comparison_range=comparison
        )

        response = {
            "cluster": cluster,
            "selected_urls": selected,
            "site_url": request.site_url,
            "date_range": range_dict(primary),
            "comparison_date_range": range_dict(comparison),
            "summary": summary,
            "previous_summary": previous_summary,
            "trends": trends,
            "series": series,
            "urls": [
                _url_breakdown(aggregator, analytics, url, gsc_records, ahrefs_records, previous_records)
                for url in selected
            ],
            "last_updated": datetime.utcnow().isoformat()
        }

        await cache.set(cache_key, response, ttl=settings.DASHBOARD_CACHE_TTL)
        return response

    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error building cluster summary: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build cluster summary: {str(e)}"
        )
