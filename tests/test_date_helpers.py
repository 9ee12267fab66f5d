"""
Tests for date range presets and comparison range resolution.
"""

from datetime import date

import pytest

from app.models.metrics import DateRange, SectionFilters
from app.utils.date_helpers import (
    COMPARISON_PRESETS,
    days_in_range,
    get_comparison_date_range,
    get_comparison_preset_ranges,
    get_date_range_preset,
    list_comparison_presets,
    resolve_section_ranges,
    shift_months,
    shift_years,
)
from app.utils.error_handlers import ValidationError

TODAY = date(2024, 3, 31)


def as_tuple(date_range):
    return (date_range.start_date, date_range.end_date)


class TestComparisonPresets:

    def test_last_28_days_vs_previous(self):
        ranges = get_comparison_preset_ranges("last_28d_vs_previous", TODAY)
        assert as_tuple(ranges["primary"]) == ("2024-03-04", "2024-03-31")
        assert as_tuple(ranges["comparison"]) == ("2024-02-05", "2024-03-03")

    def test_last_24h_vs_week_ago(self):
        ranges = get_comparison_preset_ranges("last_24h_vs_week_ago", TODAY)
        assert as_tuple(ranges["primary"]) == ("2024-03-31", "2024-03-31")
        assert as_tuple(ranges["comparison"]) == ("2024-03-24", "2024-03-24")

    def test_year_ago_from_leap_day(self):
        ranges = get_comparison_preset_ranges("last_7d_vs_year_ago", date(2024, 2, 29))
        assert as_tuple(ranges["primary"]) == ("2024-02-23", "2024-02-29")
        assert as_tuple(ranges["comparison"]) == ("2023-02-23", "2023-02-28")

    def test_months_window_clamps_month_end(self):
        ranges = get_comparison_preset_ranges("last_3m_vs_previous", TODAY)
        assert as_tuple(ranges["primary"]) == ("2024-01-01", "2024-03-31")
        assert as_tuple(ranges["comparison"]) == ("2023-10-01", "2023-12-31")

    def test_previous_period_has_equal_length(self):
        for name, (_, _, kind) in COMPARISON_PRESETS.items():
            if kind != "previous" or name.startswith("last_3m") or name.startswith("last_6m"):
                continue
            ranges = get_comparison_preset_ranges(name, TODAY)
            assert days_in_range(ranges["primary"]) == days_in_range(ranges["comparison"])

    def test_unknown_preset_raises(self):
        with pytest.raises(ValidationError):
            get_comparison_preset_ranges("last_1000d", TODAY)

    def test_list_presets(self):
        presets = list_comparison_presets(TODAY)
        assert len(presets) == len(COMPARISON_PRESETS)
        assert presets[0]["value"] == "last_24h_vs_previous"
        assert set(presets[0]["primary"]) == {"start_date", "end_date"}


class TestRangeHelpers:

    def test_previous_period(self):
        primary = DateRange(start_date="2024-01-08", end_date="2024-01-14")
        assert as_tuple(get_comparison_date_range(primary)) == ("2024-01-01", "2024-01-07")

    def test_previous_year(self):
        primary = DateRange(start_date="2024-01-08", end_date="2024-01-14")
        assert as_tuple(get_comparison_date_range(primary, "previous_year")) == ("2023-01-08", "2023-01-14")

    def test_simple_preset(self):
        assert as_tuple(get_date_range_preset("last_7_days", TODAY)) == ("2024-03-24", "2024-03-31")

    def test_shift_helpers(self):
        assert shift_years(date(2024, 2, 29), -1) == date(2023, 2, 28)
        assert shift_months(date(2024, 3, 31), -1) == date(2024, 2, 29)
        assert shift_months(date(2024, 11, 15), 2) == date(2025, 1, 15)


class TestResolveSectionRanges:

    def _filters(self, **kwargs):
        return SectionFilters(
            date_range=DateRange(start_date="2024-01-08", end_date="2024-01-14"), **kwargs
        )

    def test_comparison_disabled(self):
        ranges = resolve_section_ranges(self._filters())
        assert as_tuple(ranges["primary"]) == ("2024-01-08", "2024-01-14")
        assert ranges["comparison"] is None

    def test_custom_defaults_to_previous_period(self):
        ranges = resolve_section_ranges(self._filters(enable_comparison=True, comparison_preset="custom"))
        assert as_tuple(ranges["comparison"]) == ("2024-01-01", "2024-01-07")

    def test_custom_uses_supplied_comparison(self):
        filters = self._filters(
            enable_comparison=True,
            comparison_date_range=DateRange(start_date="2023-12-01", end_date="2023-12-07"),
        )
        assert as_tuple(resolve_section_ranges(filters)["comparison"]) == ("2023-12-01", "2023-12-07")

    def test_named_preset_overrides_section_range(self):
        filters = self._filters(enable_comparison=True, comparison_preset="last_7d_vs_previous")
        ranges = resolve_section_ranges(filters, TODAY)
        assert as_tuple(ranges["primary"]) == ("2024-03-25", "2024-03-31")
        assert as_tuple(ranges["comparison"]) == ("2024-03-18", "2024-03-24")
