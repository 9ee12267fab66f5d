"""
Tests for MetricNormalizer: raw GSC / Ahrefs rows into normalized metric entries.
"""

from app.services.normalizers.metric_normalizer import MetricNormalizer


class TestNormalizeGSCRows:

    def test_full_row_produces_four_entries_sharing_keys(self):
        rows = [{
            "date": "2024-01-01", "query": "seo", "page": "https://example.com/a",
            "clicks": 10, "impressions": 100, "ctr": 0.1, "position": 3.2,
        }]
        metrics = MetricNormalizer().normalize_gsc_rows(rows)

        assert len(metrics) == 4
        assert {m.metric_type for m in metrics} == {"clicks", "impressions", "ctr", "position"}
        assert {(m.date, m.query, m.url, m.source) for m in metrics} == {
            ("2024-01-01", "seo", "https://example.com/a", "gsc")
        }
        values = {m.metric_type: m.value for m in metrics}
        assert values == {"clicks": 10, "impressions": 100, "ctr": 0.1, "position": 3.2}

    def test_sibling_values_attached(self):
        rows = [{"date": "2024-01-01", "clicks": 5, "impressions": 50}]
        metrics = MetricNormalizer().normalize_gsc_rows(rows)
        assert len(metrics) == 2
        for metric in metrics:
            assert metric.clicks == 5
            assert metric.impressions == 50
            assert metric.ctr is None

    def test_row_without_query_is_time_series(self):
        metrics = MetricNormalizer().normalize_gsc_rows([{"date": "2024-01-01", "clicks": 1}])
        assert metrics[0].is_time_series
        assert metrics[0].query is None

    def test_zero_values_are_kept(self):
        metrics = MetricNormalizer().normalize_gsc_rows([
            {"date": "2024-01-01", "clicks": 0, "impressions": 0, "ctr": 0, "position": 0}
        ])
        assert len(metrics) == 4

    def test_rows_without_date_are_skipped_and_counted(self):
        normalizer = MetricNormalizer()
        metrics = normalizer.normalize_gsc_rows([
            {"query": "no date", "clicks": 1},
            {"date": "not-a-date", "clicks": 1},
            {"date": "2024-01-01"},
            {"date": "2024-01-01", "clicks": 3},
        ])
        assert len(metrics) == 1
        assert normalizer.skipped_rows == 3

    def test_skipped_rows_reset_between_calls(self):
        normalizer = MetricNormalizer()
        normalizer.normalize_gsc_rows([{"clicks": 1}])
        normalizer.normalize_gsc_rows([{"date": "2024-01-01", "clicks": 1}])
        assert normalizer.skipped_rows == 0


class TestNormalizeAhrefsRows:

    def test_volume_and_traffic_entries_carry_details(self):
        rows = [{
            "date": "2024-02-01", "keyword": "rank tracker", "url": "https://example.com/rank",
            "position": 4, "volume": 1200, "traffic": 90, "difficulty": 35, "cpc": 2.5,
            "previous_traffic": 60, "previous_position": 6, "previous_date": "2024-01-01",
        }]
        metrics = MetricNormalizer().normalize_ahrefs_rows(rows)

        assert sorted(m.metric_type for m in metrics) == ["traffic", "volume"]
        for metric in metrics:
            assert metric.source == "ahrefs"
            assert metric.query == "rank tracker"
            assert metric.position == 4
            assert metric.difficulty == 35
            assert metric.previous_traffic == 60
            assert metric.previous_date == "2024-01-01"

    def test_row_without_volume_or_traffic_is_skipped(self):
        normalizer = MetricNormalizer()
        metrics = normalizer.normalize_ahrefs_rows([
            {"date": "2024-02-01", "keyword": "only position", "position": 3}
        ])
        assert metrics == []
        assert normalizer.skipped_rows == 1
