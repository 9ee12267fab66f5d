"""
Data formatting utilities
"""

from typing import Any, Dict, List, Optional
import csv
import io
import logging

logger = logging.getLogger(__name__)

TABLE_EXPORT_COLUMNS = [
    ("Query", "query"),
    ("URL", "url"),
    ("Clicks", "clicks"),
    ("Impressions", "impressions"),
    ("CTR (%)", "ctr"),
    ("Position", "position"),
    ("Volume", "volume"),
    ("Traffic", "traffic"),
    ("Source", "source"),
]


def format_percentage(value: float, decimals: int = 2) -> str:
    """
    Format percentage
    """
    return f"{value:.{decimals}f}%"


def format_number(value: float, decimals: int = 0) -> str:
    """
    Format number with thousand separators
    """
    return f"{value:,.{decimals}f}"


def format_metric_value(value: Optional[float], metric: str) -> str:
    """
    Format a metric for display

    ctr is stored as a fraction and shown as a percentage.
    """
    if value is None:
        return "-"
    if metric == "ctr":
        return format_percentage(value * 100)
    if metric == "position":
        return f"{value:.1f}"
    if metric in ("clicks", "impressions", "volume", "traffic"):
        return format_number(value)
    if metric == "cpc":
        return f"${value:.2f}"
    return str(value)


def export_table_to_csv(rows: List[Dict[str, Any]]) -> str:
    """
    Render table rows as CSV (every cell quoted)
    """
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow([header for header, _ in TABLE_EXPORT_COLUMNS])

    for row in rows:
        line = []
        for _, field in TABLE_EXPORT_COLUMNS:
            value = row.get(field)
            if field == "ctr" and value is not None:
                value = round(value * 100, 2)
            line.append("" if value is None else value)
        writer.writerow(line)

    return output.getvalue()
