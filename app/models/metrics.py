"""
Normalized metric and filter models shared by ingest, storage and aggregation
"""

from enum import Enum
from typing import Optional, List, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.utils.validators import validate_date_format


class MetricSource(str, Enum):
    GSC = "gsc"
    AHREFS = "ahrefs"


class MetricType(str, Enum):
    CLICKS = "clicks"
    IMPRESSIONS = "impressions"
    CTR = "ctr"
    POSITION = "position"
    VOLUME = "volume"
    TRAFFIC = "traffic"


GSC_METRIC_TYPES = (MetricType.CLICKS, MetricType.IMPRESSIONS, MetricType.CTR, MetricType.POSITION)
AHREFS_METRIC_TYPES = (MetricType.VOLUME, MetricType.TRAFFIC)

METRIC_FIELDS = tuple(m.value for m in MetricType)

# Ahrefs attributes carried alongside volume/traffic entries
AHREFS_DETAIL_FIELDS = (
    "difficulty",
    "cpc",
    "serp_features",
    "previous_traffic",
    "previous_position",
    "previous_date",
    "traffic_change",
    "position_change",
)


class NormalizedMetric(BaseModel):
    """
    One fact about one (date, source) pair, optionally scoped to a query/url.

    A single (date, query, url, source) key is represented by one entry per
    metric type present in the source row. The sibling metric fields hold the
    other values of the same key for display.
    """
    model_config = ConfigDict(use_enum_values=True)

    date: str
    source: MetricSource
    metric_type: MetricType
    value: float
    query: Optional[str] = None
    url: Optional[str] = None
    country: Optional[str] = None
    device: Optional[str] = None

    clicks: Optional[float] = None
    impressions: Optional[float] = None
    ctr: Optional[float] = None
    position: Optional[float] = None
    volume: Optional[float] = None
    traffic: Optional[float] = None

    difficulty: Optional[float] = None
    cpc: Optional[float] = None
    serp_features: Optional[str] = None
    previous_traffic: Optional[float] = None
    previous_position: Optional[float] = None
    previous_date: Optional[str] = None
    traffic_change: Optional[float] = None
    position_change: Optional[float] = None

    @property
    def is_time_series(self) -> bool:
        return not self.query and not self.url

    @property
    def record_key(self) -> Tuple[str, str, str, str]:
        return (self.date, self.query or "", self.url or "", self.source)


class DateRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")

    @field_validator("start_date", "end_date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        if not validate_date_format(value):
            raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD")
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start_date > self.end_date:
            raise ValueError(f"Start date {self.start_date} is after end date {self.end_date}")
        return self

    def contains(self, day: str) -> bool:
        return self.start_date <= day <= self.end_date


class SectionFilters(BaseModel):
    """
    Filters scoped to one dashboard section (chart, quick view, table)
    """
    model_config = ConfigDict(populate_by_name=True)

    date_range: DateRange = Field(alias="dateRange")
    enable_comparison: bool = Field(False, alias="enableComparison")
    comparison_date_range: Optional[DateRange] = Field(None, alias="comparisonDateRange")
    comparison_preset: Optional[str] = Field(None, alias="comparisonPreset")


class DashboardRequest(BaseModel):
    """
    Body accepted by the dashboard section endpoints
    """
    model_config = ConfigDict(populate_by_name=True)

    site_url: Optional[str] = Field(None, alias="siteUrl")
    filters: SectionFilters
    metrics: List[MetricType] = Field(
        default_factory=lambda: list(GSC_METRIC_TYPES),
        description="Selected metrics"
    )
    sources: List[MetricSource] = Field(
        default_factory=lambda: [MetricSource.GSC, MetricSource.AHREFS]
    )
    urls: Optional[List[str]] = Field(None, description="Selected URLs (exact match)")
    queries: Optional[List[str]] = Field(None, description="Query substrings")
