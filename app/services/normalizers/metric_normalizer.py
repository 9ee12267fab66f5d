"""
Metric Normalizer - Converts raw GSC and Ahrefs rows into normalized metric entries
"""

from typing import Any, Dict, Iterable, List, Optional
from datetime import date, datetime
import logging

from app.models.metrics import (
    NormalizedMetric,
    MetricSource,
    GSC_METRIC_TYPES,
    AHREFS_METRIC_TYPES,
    AHREFS_DETAIL_FIELDS,
)
from app.utils.validators import validate_date_format

logger = logging.getLogger(__name__)


def _coerce_date(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        candidate = value.strip()[:10]
        if validate_date_format(candidate):
            return candidate
    return None


def _coerce_number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class MetricNormalizer:
    """
    Normalizes raw rows into NormalizedMetric entries

    After each call `skipped_rows` holds the number of input rows that were
    dropped (missing/invalid date, or no populated metric).
    """

    def __init__(self):
        self.skipped_rows = 0

    def normalize_gsc_rows(self, rows: Iterable[Dict[str, Any]]) -> List[NormalizedMetric]:
        """
        Normalize GSC rows: {date, query, page, country, device, clicks, impressions, ctr, position}

        Emits one entry per populated metric, all sharing date/query/url.
        Rows without query/page are time-series totals.
        """
        metrics: List[NormalizedMetric] = []
        self.skipped_rows = 0

        for row in rows:
            row_date = _coerce_date(row.get("date"))
            if row_date is None:
                self.skipped_rows += 1
                continue

            values = {m.value: _coerce_number(row.get(m.value)) for m in GSC_METRIC_TYPES}
            present = [m for m in GSC_METRIC_TYPES if values[m.value] is not None]
            if not present:
                self.skipped_rows += 1
                continue

            base = {
                "date": row_date,
                "source": MetricSource.GSC,
                "query": _clean_text(row.get("query")),
                "url": _clean_text(row.get("page") or row.get("url")),
                "country": _clean_text(row.get("country")),
                "device": _clean_text(row.get("device")),
                **values,
            }
            for metric_type in present:
                metrics.append(NormalizedMetric(
                    metric_type=metric_type,
                    value=values[metric_type.value],
                    **base
                ))

        if self.skipped_rows:
            logger.warning(f"Skipped {self.skipped_rows} GSC rows without a valid date or metrics")
        logger.info(f"Normalized GSC rows into {len(metrics)} metric entries")
        return metrics

    def normalize_ahrefs_rows(self, rows: Iterable[Dict[str, Any]]) -> List[NormalizedMetric]:
        """
        Normalize Ahrefs rows: {date, keyword, url, position, volume, traffic, ...}

        Emits one entry per populated volume/traffic value. Position, difficulty,
        cpc, SERP features and the comparison columns ride along on each entry.
        """
        metrics: List[NormalizedMetric] = []
        self.skipped_rows = 0

        for row in rows:
            row_date = _coerce_date(row.get("date"))
            if row_date is None:
                self.skipped_rows += 1
                continue

            values = {m.value: _coerce_number(row.get(m.value)) for m in AHREFS_METRIC_TYPES}
            present = [m for m in AHREFS_METRIC_TYPES if values[m.value] is not None]
            if not present:
                self.skipped_rows += 1
                continue

            details = {}
            for field in AHREFS_DETAIL_FIELDS:
                raw = row.get(field)
                if field == "previous_date":
                    details[field] = _coerce_date(raw)
                elif field == "serp_features":
                    details[field] = _clean_text(raw)
                else:
                    details[field] = _coerce_number(raw)

            base = {
                "date": row_date,
                "source": MetricSource.AHREFS,
                "query": _clean_text(row.get("keyword") or row.get("query")),
                "url": _clean_text(row.get("url")),
                "position": _coerce_number(row.get("position")),
                **values,
                **details,
            }
            for metric_type in present:
                metrics.append(NormalizedMetric(
                    metric_type=metric_type,
                    value=values[metric_type.value],
                    **base
                ))

        if self.skipped_rows:
            logger.warning(f"Skipped {self.skipped_rows} Ahrefs rows without a valid date or metrics")
        logger.info(f"Normalized Ahrefs rows into {len(metrics)} metric entries")
        return metrics
