"""Unit tests for content profiling of sampled columns."""

import pytest

from ghgkit.column_profiler import ColumnProfiler


@pytest.fixture
def profiler():
    return ColumnProfiler()


class TestColumnProfiler:

    def test_numeric_column(self, profiler):
        profile = profiler.profile_column("Quantity", ["1500", "200", "3,000"])
        assert profile['sample_size'] == 3
        assert profile['numeric_ratio'] == 1.0
        assert profile['year_ratio'] == 0.0

    def test_year_column_is_not_a_date(self, profiler):
        profile = profiler.profile_column("Year", ["2023", "2024"])
        assert profile['year_ratio'] == 1.0
        assert profile['date_ratio'] == 0.0

    def test_date_column(self, profiler):
        profile = profiler.profile_column("When", ["2024-01-15", "15/02/2024", "2024-03-01T00:00:00"])
        assert profile['date_ratio'] == 1.0

    def test_scope_column(self, profiler):
        profile = profiler.profile_column("Scope", ["SCOPE_1", "Scope 2", "s3"])
        assert profile['scope_ratio'] == 1.0

    def test_activity_type_and_unit_columns(self, profiler):
        assert profiler.profile_column("T", ["Electricity", "Diesel", "natural gas"])['activity_type_ratio'] == 1.0
        assert profiler.profile_column("U", ["kWh", "litres", "m3"])['unit_ratio'] == 1.0

    def test_notation_column(self, profiler):
        assert profiler.profile_column("Notation", ["NO", "NE", "C"])['notation_ratio'] == 1.0

    def test_empty_column(self, profiler):
        profile = profiler.profile_column("Empty", ["", None, "  "])
        assert profile['sample_size'] == 0
        assert profile['null_count'] == 3
        assert profile['numeric_ratio'] == 0.0

    def test_sample_is_capped(self):
        profiler = ColumnProfiler(sample_size=500)
        assert profiler.sample_size == 20
        profile = profiler.profile_column("Quantity", [str(i) for i in range(100)])
        assert profile['sample_size'] == 20

    def test_short_category(self, profiler):
        repeating = profiler.profile_column("Type", ["Electricity", "Electricity", "Diesel", "Diesel"])
        assert profiler.is_short_category(repeating) is True
        distinct = profiler.profile_column("Site", ["A", "B", "C", "D"])
        assert profiler.is_short_category(distinct) is False

    def test_profile_table_handles_short_rows(self, profiler):
        profiles = profiler.profile_table(["A", "B"], [["1"], ["2", "x"]])
        assert len(profiles) == 2
        assert profiles[1]['sample_size'] == 1
