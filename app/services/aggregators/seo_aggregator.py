"""
SEO Aggregator - Aggregates normalized GSC and Ahrefs metrics for dashboard sections
"""

from typing import Dict, Any, Iterable, List, Optional
from collections import defaultdict
from datetime import timedelta
import logging

from app.models.metrics import (
    DateRange,
    NormalizedMetric,
    MetricSource,
    METRIC_FIELDS,
    AHREFS_DETAIL_FIELDS,
)
from app.utils.date_helpers import parse_date, format_date, days_in_range

logger = logging.getLogger(__name__)

GSC = MetricSource.GSC.value
AHREFS = MetricSource.AHREFS.value


def _weighted_position(position_sum: float, weight: float, positions: List[float]) -> float:
    """Impression-weighted position, falling back to the simple mean"""
    if weight > 0:
        return position_sum / weight
    if positions:
        return sum(positions) / len(positions)
    return 0.0


class SEOAggregator:
    """
    Aggregates normalized metrics into summaries, chart series and table rows
    """

    def collapse_records(self, metrics: Iterable[NormalizedMetric]) -> List[Dict[str, Any]]:
        """
        Collapse metric entries back into one record per (date, query, url, source)

        Each entry's metric_type/value is authoritative; sibling values only
        fill fields no entry supplied.
        """
        records: Dict[tuple, Dict[str, Any]] = {}
        authoritative: Dict[tuple, set] = defaultdict(set)

        for metric in metrics:
            key = metric.record_key
            record = records.get(key)
            if record is None:
                record = {
                    "date": metric.date,
                    "source": metric.source,
                    "query": metric.query,
                    "url": metric.url,
                    "country": metric.country,
                    "device": metric.device,
                }
                for field in METRIC_FIELDS:
                    record[field] = None
                for field in AHREFS_DETAIL_FIELDS:
                    record[field] = None
                records[key] = record

            record[metric.metric_type] = metric.value
            authoritative[key].add(metric.metric_type)

            for field in METRIC_FIELDS:
                sibling = getattr(metric, field)
                if field not in authoritative[key] and record[field] is None and sibling is not None:
                    record[field] = sibling
            for field in AHREFS_DETAIL_FIELDS:
                if record[field] is None:
                    record[field] = getattr(metric, field)

        return list(records.values())

    def filter_records(
        self,
        records: Iterable[Dict[str, Any]],
        date_range: Optional[DateRange] = None,
        sources: Optional[List[str]] = None,
        urls: Optional[List[str]] = None,
        queries: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Filter records by date range, source, exact URL and query substring
        """
        url_set = set(urls) if urls else None
        needles = [q.lower() for q in queries] if queries else None
        source_set = {getattr(s, "value", s) for s in sources} if sources else None

        filtered = []
        for record in records:
            if date_range is not None and not date_range.contains(record["date"]):
                continue
            if source_set is not None and record["source"] not in source_set:
                continue
            if url_set is not None and record.get("url") not in url_set:
                continue
            if needles is not None:
                query = (record.get("query") or "").lower()
                if not query or not any(needle in query for needle in needles):
                    continue
            filtered.append(record)
        return filtered

    @staticmethod
    def matches_cluster_url(url: Optional[str], cluster_urls: Iterable[str]) -> bool:
        """
        Case-insensitive containment in either direction, so a cluster entry
        can be a full URL or a path fragment such as /blog/
        """
        if not url:
            return False
        url = url.lower()
        for cluster_url in cluster_urls:
            cluster_url = cluster_url.lower()
            if cluster_url in url or url in cluster_url:
                return True
        return False

    def filter_cluster_records(self, records: Iterable[Dict[str, Any]], cluster_urls: List[str]) -> List[Dict[str, Any]]:
        """
        Records whose URL belongs to a performance cluster (time-series totals never do)
        """
        return [r for r in records if self.matches_cluster_url(r.get("url"), cluster_urls)]

    def scope_gsc_records(self, records: Iterable[Dict[str, Any]], has_dimension_filter: bool) -> List[Dict[str, Any]]:
        """
        Pick the GSC records a summary is computed from

        Time-series totals and query/page rows describe the same clicks, so
        only one kind is used: detail rows when URLs or queries are selected,
        otherwise the daily totals (detail rows if no totals were imported).
        """
        gsc = [r for r in records if r["source"] == GSC]
        detail = [r for r in gsc if r.get("query") or r.get("url")]
        if has_dimension_filter:
            return detail
        totals = [r for r in gsc if not r.get("query") and not r.get("url")]
        return totals or detail

    def summarize(self, records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Summary statistics for a set of records

        Returns:
            total_clicks, total_impressions, avg_ctr (fraction), avg_position,
            total_traffic, record_count
        """
        total_clicks = 0.0
        total_impressions = 0.0
        total_traffic = 0.0
        ctrs: List[float] = []
        positions: List[float] = []
        count = 0

        for record in records:
            count += 1
            if record["source"] == AHREFS:
                total_traffic += record.get("traffic") or 0
                continue

            total_clicks += record.get("clicks") or 0
            total_impressions += record.get("impressions") or 0
            if record.get("ctr") is not None:
                ctrs.append(record["ctr"])
            position = record.get("position")
            if position is not None and position > 0:
                positions.append(position)

        if total_impressions > 0:
            avg_ctr = total_clicks / total_impressions
        elif ctrs:
            avg_ctr = sum(ctrs) / len(ctrs)
        else:
            avg_ctr = 0.0

        avg_position = sum(positions) / len(positions) if positions else 0.0

        return {
            "total_clicks": total_clicks,
            "total_impressions": total_impressions,
            "avg_ctr": avg_ctr,
            "avg_position": avg_position,
            "total_traffic": total_traffic,
            "record_count": count
        }

    def calculate_total_volume(self, records: Iterable[Dict[str, Any]], urls: Optional[List[str]] = None) -> float:
        """
        Sum Ahrefs search volume over the selected URLs

        Volume is a point-in-time property of the Ahrefs snapshot, so callers
        pass the full snapshot rather than a date-filtered subset.
        """
        url_set = set(urls) if urls else None
        total = 0.0
        for record in records:
            if record["source"] != AHREFS or record.get("volume") is None:
                continue
            if url_set is not None and record.get("url") not in url_set:
                continue
            total += record["volume"]
        return total

    def _daily_values(self, records: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        buckets: Dict[str, Dict[str, Any]] = defaultdict(lambda: {
            "clicks": 0.0,
            "impressions": 0.0,
            "traffic": 0.0,
            "volume": 0.0,
            "position_sum": 0.0,
            "position_weight": 0.0,
            "positions": [],
            "ctrs": [],
            "has_gsc": False,
            "has_ahrefs": False
        })

        for record in records:
            bucket = buckets[record["date"]]
            if record["source"] == AHREFS:
                bucket["has_ahrefs"] = True
                bucket["traffic"] += record.get("traffic") or 0
                bucket["volume"] += record.get("volume") or 0
                continue

            bucket["has_gsc"] = True
            impressions = record.get("impressions") or 0
            bucket["clicks"] += record.get("clicks") or 0
            bucket["impressions"] += impressions
            if record.get("ctr") is not None:
                bucket["ctrs"].append(record["ctr"])
            position = record.get("position")
            if position is not None and position > 0:
                bucket["positions"].append(position)
                bucket["position_sum"] += position * impressions
                bucket["position_weight"] += impressions

        values: Dict[str, Dict[str, Any]] = {}
        for day, bucket in buckets.items():
            point: Dict[str, Any] = {}
            if bucket["has_gsc"]:
                if bucket["impressions"] > 0:
                    ctr = bucket["clicks"] / bucket["impressions"]
                elif bucket["ctrs"]:
                    ctr = sum(bucket["ctrs"]) / len(bucket["ctrs"])
                else:
                    ctr = 0.0
                point.update({
                    "clicks": bucket["clicks"],
                    "impressions": bucket["impressions"],
                    "ctr": round(ctr, 6),
                    "position": round(_weighted_position(
                        bucket["position_sum"], bucket["position_weight"], bucket["positions"]
                    ), 2)
                })
            if bucket["has_ahrefs"]:
                point["traffic"] = bucket["traffic"]
                point["volume"] = bucket["volume"]
            values[day] = point
        return values

    def build_chart_series(
        self,
        records: Iterable[Dict[str, Any]],
        metrics: List[str],
        date_range: DateRange,
        comparison_records: Optional[Iterable[Dict[str, Any]]] = None,
        comparison_range: Optional[DateRange] = None,
    ) -> List[Dict[str, Any]]:
        """
        Daily chart points for the selected metrics

        Every day of the primary range gets a point (missing values are None).
        Comparison values are aligned by day offset from the range start.
        """
        metrics = [getattr(m, "value", m) for m in metrics]
        primary_values = self._daily_values(records)
        comparison_values = self._daily_values(comparison_records) if comparison_records is not None else None

        start = parse_date(date_range.start_date)
        comparison_start = parse_date(comparison_range.start_date) if comparison_range else None
        comparison_days = days_in_range(comparison_range) if comparison_range else 0

        series = []
        for offset in range(days_in_range(date_range)):
            day = format_date(start + timedelta(days=offset))
            values = primary_values.get(day, {})
            point: Dict[str, Any] = {"date": day}
            for metric in metrics:
                point[metric] = values.get(metric)

            if comparison_values is not None and comparison_start is not None:
                if offset < comparison_days:
                    comparison_day = format_date(comparison_start + timedelta(days=offset))
                    previous = comparison_values.get(comparison_day, {})
                    point["comparison_date"] = comparison_day
                    for metric in metrics:
                        point[f"comparison_{metric}"] = previous.get(metric)
                else:
                    point["comparison_date"] = None
                    for metric in metrics:
                        point[f"comparison_{metric}"] = None

            series.append(point)

        return series

    def _group_gsc_rows(self, records: Iterable[Dict[str, Any]]) -> Dict[tuple, Dict[str, Any]]:
        grouped: Dict[tuple, Dict[str, Any]] = {}
        for record in records:
            if record["source"] != GSC or not (record.get("query") or record.get("url")):
                continue
            key = ((record.get("query") or "").lower(), record.get("url") or "")
            row = grouped.get(key)
            if row is None:
                row = {
                    "query": record.get("query"),
                    "url": record.get("url"),
                    "clicks": 0.0,
                    "impressions": 0.0,
                    "position_sum": 0.0,
                    "position_weight": 0.0,
                    "positions": [],
                    "last_date": record["date"]
                }
                grouped[key] = row

            impressions = record.get("impressions") or 0
            row["clicks"] += record.get("clicks") or 0
            row["impressions"] += impressions
            position = record.get("position")
            if position is not None and position > 0:
                row["positions"].append(position)
                row["position_sum"] += position * impressions
                row["position_weight"] += impressions
            if record["date"] > row["last_date"]:
                row["last_date"] = record["date"]

        for row in grouped.values():
            row["ctr"] = row["clicks"] / row["impressions"] if row["impressions"] > 0 else 0.0
            row["gsc_position"] = _weighted_position(row["position_sum"], row["position_weight"], row["positions"])
        return grouped

    def build_table_rows(
        self,
        gsc_records: Iterable[Dict[str, Any]],
        ahrefs_records: Iterable[Dict[str, Any]] = (),
    ) -> List[Dict[str, Any]]:
        """
        Table rows per (query, url)

        GSC clicks/impressions are summed, CTR recomputed and position weighted
        by impressions. Ahrefs volume, traffic and position are joined on
        (query, url); the Ahrefs position wins, GSC position is the fallback.
        """
        grouped = self._group_gsc_rows(gsc_records)

        ahrefs_by_key: Dict[tuple, Dict[str, Any]] = {}
        for record in ahrefs_records:
            if record["source"] != AHREFS:
                continue
            key = ((record.get("query") or "").lower(), record.get("url") or "")
            existing = ahrefs_by_key.get(key)
            if existing is None or record["date"] > existing["date"]:
                ahrefs_by_key[key] = record

        rows = []
        for key, row in grouped.items():
            ahrefs = ahrefs_by_key.pop(key, None)
            rows.append(self._table_row(row, ahrefs))
        for ahrefs in ahrefs_by_key.values():
            rows.append(self._table_row(None, ahrefs))

        rows.sort(key=lambda r: (r["clicks"] or 0, r["volume"] or 0), reverse=True)
        return rows

    def _table_row(self, gsc: Optional[Dict[str, Any]], ahrefs: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        gsc_position = gsc["gsc_position"] if gsc and gsc["gsc_position"] > 0 else None
        ahrefs_position = ahrefs.get("position") if ahrefs else None
        if ahrefs_position is not None and ahrefs_position <= 0:
            ahrefs_position = None
        if ahrefs_position is not None:
            position, position_source = ahrefs_position, AHREFS
        elif gsc_position is not None:
            position, position_source = gsc_position, GSC
        else:
            position, position_source = None, None

        if gsc and ahrefs:
            source = "both"
        else:
            source = GSC if gsc else AHREFS

        base = gsc or ahrefs
        return {
            "query": base.get("query"),
            "url": base.get("url"),
            "clicks": gsc["clicks"] if gsc else None,
            "impressions": gsc["impressions"] if gsc else None,
            "ctr": round(gsc["ctr"], 6) if gsc else None,
            "position": round(position, 1) if position is not None else None,
            "position_source": position_source,
            "ahrefs_position": ahrefs_position,
            "volume": ahrefs.get("volume") if ahrefs else None,
            "traffic": ahrefs.get("traffic") if ahrefs else None,
            "difficulty": ahrefs.get("difficulty") if ahrefs else None,
            "cpc": ahrefs.get("cpc") if ahrefs else None,
            "serp_features": ahrefs.get("serp_features") if ahrefs else None,
            "previous_traffic": ahrefs.get("previous_traffic") if ahrefs else None,
            "previous_position": ahrefs.get("previous_position") if ahrefs else None,
            "traffic_change": ahrefs.get("traffic_change") if ahrefs else None,
            "position_change": ahrefs.get("position_change") if ahrefs else None,
            "date": gsc["last_date"] if gsc else ahrefs.get("date"),
            "source": source
        }

    def get_top_pages(self, records: Iterable[Dict[str, Any]], limit: int = 10) -> List[Dict[str, Any]]:
        """
        Top pages by clicks
        """
        return self._top_by(records, "url", limit)

    def get_top_queries(self, records: Iterable[Dict[str, Any]], limit: int = 10) -> List[Dict[str, Any]]:
        """
        Top queries by clicks
        """
        return self._top_by(records, "query", limit)

    def _top_by(self, records: Iterable[Dict[str, Any]], dimension: str, limit: int) -> List[Dict[str, Any]]:
        totals = defaultdict(lambda: {
            "clicks": 0.0,
            "impressions": 0.0,
            "position_sum": 0.0,
            "position_weight": 0.0,
            "positions": []
        })

        for record in records:
            value = record.get(dimension)
            if record["source"] != GSC or not value:
                continue
            data = totals[value]
            impressions = record.get("impressions") or 0
            data["clicks"] += record.get("clicks") or 0
            data["impressions"] += impressions
            position = record.get("position")
            if position is not None and position > 0:
                data["positions"].append(position)
                data["position_sum"] += position * impressions
                data["position_weight"] += impressions

        top = []
        for value, data in totals.items():
            top.append({
                dimension: value,
                "clicks": data["clicks"],
                "impressions": data["impressions"],
                "ctr": round(data["clicks"] / data["impressions"], 6) if data["impressions"] > 0 else 0.0,
                "position": round(_weighted_position(
                    data["position_sum"], data["position_weight"], data["positions"]
                ), 2)
            })

        top.sort(key=lambda x: x["clicks"], reverse=True)
        return top[:limit]

    def extract_filter_options(self, records: Iterable[Dict[str, Any]]) -> Dict[str, List[str]]:
        """
        Sorted unique queries and urls, and the sources present
        """
        queries = set()
        urls = set()
        sources = []
        for record in records:
            if record.get("query"):
                queries.add(record["query"])
            if record.get("url"):
                urls.add(record["url"])
            if record["source"] not in sources:
                sources.append(record["source"])

        return {
            "queries": sorted(queries),
            "urls": sorted(urls),
            "sources": sources
        }
