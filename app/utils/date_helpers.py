"""
Date range and comparison preset helpers

All ranges are inclusive calendar days expressed as ISO strings (YYYY-MM-DD).
"""

from datetime import date, datetime, timedelta
from typing import Dict, Optional, Union
import calendar
import logging

from app.models.metrics import DateRange, SectionFilters
from app.utils.error_handlers import ValidationError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"

DATE_RANGE_PRESETS = {
    "last_7_days": 7,
    "last_30_days": 30,
    "last_90_days": 90,
}

# preset name -> (label, primary window, comparison kind)
# window is ("days", n) or ("months", n); kind is previous | week_ago | year_ago
COMPARISON_PRESETS = {
    "last_24h_vs_previous": ("Compare last 24 hours to previous period", ("days", 1), "previous"),
    "last_24h_vs_week_ago": ("Compare last 24 hours week over week", ("days", 1), "week_ago"),
    "last_7d_vs_previous": ("Compare last 7 days to previous period", ("days", 7), "previous"),
    "last_7d_vs_year_ago": ("Compare last 7 days year over year", ("days", 7), "year_ago"),
    "last_14d_vs_previous": ("14 days vs Previous 14 days", ("days", 14), "previous"),
    "last_28d_vs_previous": ("Compare last 28 days to previous period", ("days", 28), "previous"),
    "last_28d_vs_year_ago": ("Compare last 28 days year over year", ("days", 28), "year_ago"),
    "last_30d_vs_previous": ("30 days vs Previous 30 days", ("days", 30), "previous"),
    "last_60d_vs_previous": ("60 days vs Previous 60 days", ("days", 60), "previous"),
    "last_90d_vs_previous": ("90 days vs Previous 90 days", ("days", 90), "previous"),
    "last_120d_vs_previous": ("120 days vs Previous 120 days", ("days", 120), "previous"),
    "last_3m_vs_previous": ("Compare last 3 months to previous period", ("months", 3), "previous"),
    "last_3m_vs_year_ago": ("Compare last 3 months year over year", ("months", 3), "year_ago"),
    "last_6m_vs_previous": ("Compare last 6 months to previous period", ("months", 6), "previous"),
}

CUSTOM_PRESET = "custom"
DEFAULT_COMPARISON_PRESET = "last_28d_vs_previous"


def parse_date(value: Union[str, date, datetime]) -> date:
    """
    Parse an ISO date string (or date/datetime) into a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], DATE_FORMAT).date()


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def _today(today: Optional[date]) -> date:
    return today or datetime.utcnow().date()


def _make_range(start: date, end: date) -> DateRange:
    return DateRange(start_date=format_date(start), end_date=format_date(end))


def shift_years(day: date, years: int) -> date:
    """Shift by whole years; Feb 29 falls back to Feb 28"""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def shift_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month length"""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def days_in_range(date_range: DateRange) -> int:
    start = parse_date(date_range.start_date)
    end = parse_date(date_range.end_date)
    return (end - start).days + 1


def get_date_range_preset(preset: str, today: Optional[date] = None) -> DateRange:
    """
    Get the range for a simple preset (last_7_days, last_30_days, last_90_days)
    Unknown presets default to the last 30 days.
    """
    end = _today(today)
    days = DATE_RANGE_PRESETS.get(preset, 30)
    return _make_range(end - timedelta(days=days), end)


def get_comparison_date_range(
    primary: DateRange,
    comparison_type: str = "previous_period"
) -> DateRange:
    """
    Get the comparison range for a primary range

    previous_period: same number of days, ending the day before the primary start
    previous_year: the same calendar days one year earlier
    """
    start = parse_date(primary.start_date)
    end = parse_date(primary.end_date)

    if comparison_type == "previous_year":
        return _make_range(shift_years(start, -1), shift_years(end, -1))

    length = (end - start).days + 1
    comparison_end = start - timedelta(days=1)
    comparison_start = comparison_end - timedelta(days=length - 1)
    return _make_range(comparison_start, comparison_end)


def get_comparison_preset_ranges(preset: str, today: Optional[date] = None) -> Dict[str, DateRange]:
    """
    Map a comparison preset name to its primary and comparison ranges

    Returns:
        {"primary": DateRange, "comparison": DateRange}
    """
    if preset not in COMPARISON_PRESETS:
        raise ValidationError(f"Unknown comparison preset: {preset}")

    _, (unit, amount), kind = COMPARISON_PRESETS[preset]
    end = _today(today)

    if unit == "months":
        start = shift_months(end, -amount) + timedelta(days=1)
    else:
        start = end - timedelta(days=amount - 1)

    primary = _make_range(start, end)

    if kind == "week_ago":
        comparison = _make_range(start - timedelta(days=7), end - timedelta(days=7))
    elif kind == "year_ago":
        comparison = get_comparison_date_range(primary, "previous_year")
    elif unit == "months":
        comparison_end = start - timedelta(days=1)
        comparison = _make_range(shift_months(comparison_end, -amount) + timedelta(days=1), comparison_end)
    else:
        comparison = get_comparison_date_range(primary, "previous_period")

    return {"primary": primary, "comparison": comparison}


def list_comparison_presets(today: Optional[date] = None):
    """
    Describe every comparison preset with its resolved ranges
    """
    presets = []
    for name, (label, _, _) in COMPARISON_PRESETS.items():
        ranges = get_comparison_preset_ranges(name, today)
        presets.append({
            "value": name,
            "label": label,
            "primary": ranges["primary"].model_dump(),
            "comparison": ranges["comparison"].model_dump()
        })
    return presets


def resolve_section_ranges(filters: SectionFilters, today: Optional[date] = None) -> Dict[str, Optional[DateRange]]:
    """
    Resolve the primary and (optional) comparison range for a section filter

    A named preset overrides the section date range; "custom" uses the
    supplied ranges and defaults the comparison to the previous period.
    """
    if not filters.enable_comparison:
        return {"primary": filters.date_range, "comparison": None}

    preset = filters.comparison_preset or CUSTOM_PRESET
    if preset != CUSTOM_PRESET:
        return get_comparison_preset_ranges(preset, today)

    comparison = filters.comparison_date_range or get_comparison_date_range(filters.date_range)
    return {"primary": filters.date_range, "comparison": comparison}
