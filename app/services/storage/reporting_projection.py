"""
Reporting projection - maps normalized metrics to and from persisted reporting documents

GSC metrics are stored sparse: one document per metric type, with the metric
column mirrored by metric_type/value. Ahrefs metrics are stored as one combined
document per (date, query, url) row.
"""

from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime
import logging
import re

from app.models.metrics import (
    NormalizedMetric,
    MetricSource,
    GSC_METRIC_TYPES,
    AHREFS_METRIC_TYPES,
    METRIC_FIELDS,
)

logger = logging.getLogger(__name__)

# model attribute -> persisted document field
AHREFS_DOCUMENT_FIELDS = {
    "position": "position",
    "difficulty": "difficulty",
    "cpc": "cpc",
    "serp_features": "serpFeatures",
    "previous_traffic": "previousTraffic",
    "previous_position": "previousPosition",
    "previous_date": "previousDate",
    "traffic_change": "trafficChange",
    "position_change": "positionChange",
}

GSC_DIMENSIONS_TIME_SERIES = ["date"]
GSC_DIMENSIONS_DETAIL = ["date", "query", "page"]
AHREFS_DIMENSIONS = ["query", "url"]


def _compact(document: Dict[str, Any]) -> Dict[str, Any]:
    """Drop absent values so sparse documents stay sparse"""
    return {k: v for k, v in document.items() if v is not None}


def _base_document(metric: NormalizedMetric, import_id: str, site_url: Optional[str], imported_at: datetime) -> Dict[str, Any]:
    return {
        "importId": import_id,
        "siteUrl": site_url,
        "importedAt": imported_at,
        "date": metric.date,
        "query": metric.query,
        "url": metric.url,
        "page": metric.url,
        "country": metric.country,
        "device": metric.device,
        "source": metric.source,
        "isTimeSeries": metric.is_time_series,
    }


def to_documents(
    metrics: Iterable[NormalizedMetric],
    import_id: str,
    site_url: Optional[str] = None,
    dimensions: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """
    Convert normalized metrics into reporting documents

    Args:
        metrics: Normalized metric entries (GSC and/or Ahrefs)
        import_id: Import job identifier
        site_url: GSC property the data belongs to (None for Ahrefs)
        dimensions: Dimensions the data was fetched with; derived when omitted

    Returns:
        List of documents ready for insertion
    """
    imported_at = datetime.utcnow()
    documents: List[Dict[str, Any]] = []
    ahrefs_rows: Dict[tuple, Dict[str, Any]] = {}

    for metric in metrics:
        if metric.source == MetricSource.GSC:
            document = _base_document(metric, import_id, site_url, imported_at)
            document[metric.metric_type] = metric.value
            document["metric_type"] = metric.metric_type
            document["value"] = metric.value
            document["dimensions"] = dimensions or (
                GSC_DIMENSIONS_TIME_SERIES if metric.is_time_series else GSC_DIMENSIONS_DETAIL
            )
            documents.append(document)
            continue

        key = metric.record_key
        document = ahrefs_rows.get(key)
        if document is None:
            document = _base_document(metric, import_id, None, imported_at)
            document["dimensions"] = dimensions or AHREFS_DIMENSIONS
            for attribute, field in AHREFS_DOCUMENT_FIELDS.items():
                document[field] = getattr(metric, attribute)
            ahrefs_rows[key] = document
            documents.append(document)
        document[metric.metric_type] = metric.value

    documents = [_compact(d) for d in documents]
    logger.debug(f"Projected metrics into {len(documents)} documents for import {import_id}")
    return documents


def from_documents(documents: Iterable[Dict[str, Any]]) -> List[NormalizedMetric]:
    """
    Convert reporting documents back into normalized metrics

    Documents are grouped by (date, query, url, source); every metric field seen
    for a key is accumulated, then re-expanded into one entry per present
    metric, each carrying all sibling values.
    """
    grouped: Dict[tuple, Dict[str, Any]] = {}

    for document in documents:
        source = document.get("source")
        if source not in (MetricSource.GSC.value, MetricSource.AHREFS.value):
            continue

        url = document.get("url") or document.get("page")
        key = (document.get("date"), document.get("query") or "", url or "", source)

        record = grouped.get(key)
        if record is None:
            record = {
                "date": document.get("date"),
                "source": source,
                "query": document.get("query"),
                "url": url,
                "country": document.get("country"),
                "device": document.get("device"),
            }
            grouped[key] = record

        for field in METRIC_FIELDS:
            if document.get(field) is not None:
                record[field] = document[field]

        metric_type = document.get("metric_type")
        if metric_type in METRIC_FIELDS and document.get("value") is not None:
            record[metric_type] = document["value"]

        for attribute, field in AHREFS_DOCUMENT_FIELDS.items():
            if attribute == "position":
                continue
            if document.get(field) not in (None, ""):
                record[attribute] = document[field]

    metrics: List[NormalizedMetric] = []
    for record in grouped.values():
        if not record.get("date"):
            continue
        metric_types = GSC_METRIC_TYPES if record["source"] == MetricSource.GSC.value else AHREFS_METRIC_TYPES
        for metric_type in metric_types:
            value = record.get(metric_type.value)
            if value is None:
                continue
            metrics.append(NormalizedMetric(metric_type=metric_type, value=value, **record))

    return metrics


def build_query(
    site_url: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    query: Optional[str] = None,
    page: Optional[str] = None,
    source: Optional[str] = None,
    metric_types: Optional[List[str]] = None,
    import_id: Optional[str] = None,
    dimensions: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Build a MongoDB filter for reporting documents

    dimensions=["date"] selects time-series totals (no query);
    any query/page dimension selects detail rows.
    """
    mongo_query: Dict[str, Any] = {}

    if site_url:
        mongo_query["siteUrl"] = site_url
    if import_id:
        mongo_query["importId"] = import_id
    if source:
        mongo_query["source"] = source

    if start_date or end_date:
        mongo_query["date"] = {}
        if start_date:
            mongo_query["date"]["$gte"] = start_date
        if end_date:
            mongo_query["date"]["$lte"] = end_date

    if query:
        mongo_query["query"] = {"$regex": re.escape(query), "$options": "i"}
    elif dimensions:
        if "query" in dimensions or "page" in dimensions:
            mongo_query["query"] = {"$ne": None}
        else:
            mongo_query["query"] = None

    if page:
        mongo_query["page"] = {"$regex": re.escape(page), "$options": "i"}

    if metric_types:
        mongo_query["metric_type"] = {"$in": list(metric_types)}

    return mongo_query
