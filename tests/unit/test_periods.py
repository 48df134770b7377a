"""Unit tests for reporting windows and comparison periods."""

from datetime import datetime

import pandas as pd
import pytest

from src.logistics.periods import (
    AllTime,
    DateRange,
    Month,
    YearToDate,
    batch_date_range,
    comparison_windows,
    current_reporting_year,
    current_ytd,
    in_window,
    previous_window,
)


class TestMonth:
    def test_from_name(self):
        assert Month.from_name("Mar", 2024) == Month(3, 2024)
        assert Month.from_name("september", 2024) == Month(9, 2024)
        assert Month.from_name("Sept", 2024) == Month(9, 2024)
        assert Month.from_name("11", 2024) == Month(11, 2024)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown month name"):
            Month.from_name("Smarch", 2024)

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="Month must be 1-12"):
            Month(13, 2024)

    def test_previous_wraps_year(self):
        assert Month(1, 2024).previous() == Month(12, 2023)
        assert Month(3, 2024).previous() == Month(2, 2024)

    def test_label(self):
        assert Month(3, 2024).label == "March 2024"


class TestInWindow:
    def test_all_time_matches_everything(self):
        assert in_window(None, AllTime())
        assert in_window(datetime(1999, 1, 1), AllTime())

    def test_month(self):
        assert in_window(datetime(2024, 3, 31, 23, 59), Month(3, 2024))
        assert not in_window(datetime(2024, 4, 1), Month(3, 2024))

    def test_ytd_bounded(self):
        window = YearToDate(2024, through_month=3)
        assert in_window(datetime(2024, 3, 15), window)
        assert not in_window(datetime(2024, 4, 1), window)
        assert not in_window(datetime(2023, 3, 15), window)

    def test_missing_timestamps_never_match_bounded_windows(self):
        assert not in_window(None, Month(3, 2024))
        assert not in_window(pd.NaT, YearToDate(2024))
        assert not in_window("2024-03-01", Month(3, 2024))

    def test_pandas_timestamp(self):
        assert in_window(pd.Timestamp("2024-03-05"), Month(3, 2024))

    def test_date_range_half_open(self):
        window = DateRange(datetime(2024, 3, 1), datetime(2024, 3, 10))
        assert in_window(datetime(2024, 3, 1), window)
        assert not in_window(datetime(2024, 3, 10), window)


class TestReportingYear:
    def test_lag_crosses_year_boundary(self):
        assert current_reporting_year(datetime(2025, 1, 15), lag_months=1) == 2024
        assert current_reporting_year(datetime(2025, 2, 15), lag_months=1) == 2025

    def test_no_lag(self):
        assert current_reporting_year(datetime(2025, 1, 15), lag_months=0) == 2025

    def test_current_ytd(self):
        assert current_ytd(datetime(2025, 6, 1)) == YearToDate(2025)


class TestComparisonWindows:
    def test_month_compares_previous_month(self):
        assert comparison_windows(Month(1, 2024), None) == (Month(1, 2024), Month(12, 2023))

    def test_ytd_compares_same_span_last_year(self):
        current, previous = comparison_windows(YearToDate(2024, 3), None)
        assert previous == YearToDate(2023, 3)

    def test_all_time_splits_batch_range(self):
        date_range = DateRange(datetime(2024, 1, 1), datetime(2024, 1, 11))
        current, previous = comparison_windows(AllTime(), date_range)
        assert previous == DateRange(datetime(2024, 1, 1), datetime(2024, 1, 6))
        assert current == DateRange(datetime(2024, 1, 6), datetime(2024, 1, 11))

    def test_all_time_without_range(self):
        assert comparison_windows(AllTime(), None) is None
        assert previous_window(AllTime()) is None

    def test_date_range_compares_preceding_span(self):
        window = DateRange(datetime(2024, 3, 10), datetime(2024, 3, 20))
        assert previous_window(window) == DateRange(datetime(2024, 2, 29), datetime(2024, 3, 10))


class TestBatchDateRange:
    def test_covers_all_timestamps(self):
        date_range = batch_date_range([datetime(2024, 3, 5, 12), None, datetime(2024, 1, 2, 8)])
        assert date_range == DateRange(datetime(2024, 1, 2), datetime(2024, 3, 6))

    def test_empty(self):
        assert batch_date_range([None]) is None
