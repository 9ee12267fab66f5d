"""
SEO Analytics - Period-over-period comparisons and ranking distributions
"""

from typing import Dict, Any, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

# summary field -> comparison key
SUMMARY_METRICS = {
    "total_clicks": "clicks",
    "total_impressions": "impressions",
    "avg_ctr": "ctr",
    "avg_position": "position",
    "total_traffic": "traffic",
}


class SEOAnalytics:
    """
    Analytics engine for SEO metric comparisons
    """

    @staticmethod
    def calculate_percentage_change(current: Optional[float], previous: Optional[float]) -> float:
        """
        (current - previous) / previous * 100, or 0 when there is no positive baseline
        """
        current = current or 0
        if not previous or previous <= 0:
            return 0.0
        return round(((current - previous) / previous) * 100, 2)

    @staticmethod
    def calculate_position_change(current: Optional[float], previous: Optional[float]) -> float:
        """
        Inverted percentage change for rank positions: moving up (smaller number) is positive
        """
        if not current or current <= 0 or not previous or previous <= 0:
            return 0.0
        return round(((previous - current) / previous) * 100, 2)

    def _change(self, metric: str, current: Optional[float], previous: Optional[float]) -> float:
        if metric == "position":
            return self.calculate_position_change(current, previous)
        return self.calculate_percentage_change(current, previous)

    def calculate_trends(
        self,
        current_metrics: Dict[str, Any],
        previous_metrics: Dict[str, Any],
        current_volume: Optional[float] = None,
        previous_volume: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Calculate changes between the current and previous period summaries

        Args:
            current_metrics: Summary for the primary period (SEOAggregator.summarize)
            previous_metrics: Summary for the comparison period
            current_volume / previous_volume: Ahrefs volume totals, when shown

        Returns:
            {metric: {current, previous, difference, change_pct}}
        """
        trends: Dict[str, Any] = {}
        for field, metric in SUMMARY_METRICS.items():
            current = current_metrics.get(field, 0) or 0
            previous = previous_metrics.get(field, 0) or 0
            trends[metric] = {
                "current": current,
                "previous": previous,
                "difference": current - previous,
                "change_pct": self._change(metric, current, previous)
            }

        if current_volume is not None:
            previous = previous_volume if previous_volume is not None else current_volume
            trends["volume"] = {
                "current": current_volume,
                "previous": previous,
                "difference": current_volume - previous,
                "change_pct": self.calculate_percentage_change(current_volume, previous)
            }

        return trends

    def attach_row_changes(
        self,
        current_rows: List[Dict[str, Any]],
        previous_rows: Iterable[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """
        Add per-row changes against the comparison period, matched on (query, url)
        """
        previous_by_key = {
            ((row.get("query") or "").lower(), row.get("url") or ""): row
            for row in previous_rows
        }

        for row in current_rows:
            previous = previous_by_key.get(((row.get("query") or "").lower(), row.get("url") or ""))
            changes: Dict[str, Any] = {}
            for metric in ("clicks", "impressions", "ctr", "position"):
                previous_value = previous.get(metric) if previous else None
                changes[metric] = {
                    "previous": previous_value,
                    "change_pct": self._change(metric, row.get(metric), previous_value)
                }
            row["changes"] = changes
        return current_rows

    def calculate_ahrefs_row_changes(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """
        Changes taken from the comparison columns of an Ahrefs export

        Exported absolute changes are used as-is; percentages are derived
        from the previous values. Table rows carry the Ahrefs-only position in
        `ahrefs_position`, so a GSC fallback position is never compared with
        the previous Ahrefs position.
        """
        traffic = row.get("traffic")
        previous_traffic = row.get("previous_traffic")
        position = row["ahrefs_position"] if "ahrefs_position" in row else row.get("position")
        previous_position = row.get("previous_position")

        traffic_change = row.get("traffic_change")
        if traffic_change is None and traffic is not None and previous_traffic is not None:
            traffic_change = traffic - previous_traffic

        position_change = row.get("position_change")
        if position_change is None and position is not None and previous_position is not None:
            position_change = previous_position - position

        return {
            "traffic_change": traffic_change,
            "traffic_change_pct": self.calculate_percentage_change(traffic, previous_traffic),
            "position_change": position_change,
            "position_change_pct": self.calculate_position_change(position, previous_position)
        }

    def calculate_keyword_rankings(self, rows: Iterable[Dict[str, Any]]) -> Dict[str, int]:
        """
        Distribution of ranked keywords by position bucket

        Rows without a positive position are not ranked and not counted.
        """
        rankings = {
            "top_3": 0,
            "top_10": 0,
            "top_20": 0,
            "top_50": 0,
            "top_100": 0,
            "beyond_100": 0
        }

        for row in rows:
            position = row.get("position")
            if position is None or position <= 0:
                continue

            if position <= 3:
                rankings["top_3"] += 1
            elif position <= 10:
                rankings["top_10"] += 1
            elif position <= 20:
                rankings["top_20"] += 1
            elif position <= 50:
                rankings["top_50"] += 1
            elif position <= 100:
                rankings["top_100"] += 1
            else:
                rankings["beyond_100"] += 1

        return rankings
