"""Tests for period-bucketed stats aggregation."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from sheetdeck_analytics.aggregator import StatsAggregator, fold_rows, parse_bucket
from sheetdeck_analytics.core.models import (
    BreakdownResponse,
    DailyRows,
    DeviceStatsResponse,
    Dimension,
    HourlyRows,
    TimeSeriesResponse,
)
from sheetdeck_analytics.errors import InvalidPeriodError, StorageError


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _storage(hourly=None, daily=None):
    storage = MagicMock()
    storage.query_last_24_hours = AsyncMock(return_value=HourlyRows(hourly or []))
    storage.query_by_day = AsyncMock(return_value=DailyRows(daily or []))
    return storage


H0 = datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
H1 = H0 + timedelta(hours=1)
H2 = H0 + timedelta(hours=2)


class TestParseBucket:
    """Test bucket value normalization."""

    def test_hour_string(self):
        assert parse_bucket("2024-05-01 10:00:00") == H0

    def test_date_string(self):
        assert parse_bucket("2024-05-01") == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_date_object(self):
        assert parse_bucket(date(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        assert parse_bucket(datetime(2024, 5, 1, 10)) == H0


class TestFoldRows:
    """Test folding of both row shapes."""

    def test_hourly_and_daily_fold_to_same_shape(self):
        hourly = HourlyRows([{"hour": "2024-05-01 00:00:00", "views": 4, "unique_visitors": 2}])
        daily = DailyRows([{"date": "2024-05-01", "views": 4, "unique_visitors": 2}])

        a = fold_rows(hourly, Dimension.OVERVIEW)
        b = fold_rows(daily, Dimension.OVERVIEW)

        assert a.entries == b.entries
        assert a.totals == b.totals == {"views": 4, "visitors": 2}

    def test_breakdown_uses_name_column(self):
        rows = DailyRows([
            {"name": "Chrome", "views": 10, "unique_visitors": 6},
            {"name": None, "views": 1, "unique_visitors": 1},
        ])
        folded = fold_rows(rows, Dimension.BROWSERS)

        assert [e.name for e in folded.entries] == ["Chrome", ""]
        assert folded.totals == {"views": 11, "visitors": 7}

    def test_null_counters_are_zero(self):
        rows = HourlyRows([{"hour": "2024-05-01 10:00:00", "views": None, "unique_visitors": None}])
        folded = fold_rows(rows, Dimension.OVERVIEW)
        assert folded.totals == {"views": 0, "visitors": 0}

    def test_device_counters(self):
        rows = HourlyRows([
            {"hour": "2024-05-01 10:00:00", "mobile_views": 3, "mobile_visitors": 2,
             "desktop_views": 5, "desktop_visitors": 4},
        ])
        folded = fold_rows(rows, Dimension.DEVICES)
        assert folded.totals == {
            "mobile_views": 3, "mobile_visitors": 2,
            "desktop_views": 5, "desktop_visitors": 4,
        }

    def test_rejects_unknown_result(self):
        with pytest.raises(TypeError):
            fold_rows([{"views": 1}], Dimension.OVERVIEW)


class TestOverview:
    """Test time-series overview stats."""

    def test_24h_sums_hourly_rows(self):
        storage = _storage(hourly=[
            {"hour": "2024-05-01 10:00:00", "views": 5, "unique_visitors": 3},
            {"hour": "2024-05-01 11:00:00", "views": 2, "unique_visitors": 2},
            {"hour": "2024-05-01 12:00:00", "views": 1, "unique_visitors": 1},
        ])

        stats = run_async(StatsAggregator(storage).get_overview("24h"))

        assert isinstance(stats, TimeSeriesResponse)
        assert stats.period == "24h"
        assert stats.total_views == 8
        assert stats.total_unique_visitors == 6
        assert stats.start_date == H0
        assert stats.end_date == H2
        assert [b.timestamp for b in stats.intervals] == [H0, H1, H2]
        storage.query_last_24_hours.assert_awaited_once_with(Dimension.OVERVIEW)
        storage.query_by_day.assert_not_called()

    def test_7d_with_no_rows_is_empty_success(self):
        storage = _storage(daily=[])

        stats = run_async(StatsAggregator(storage).get_overview("7d"))

        assert stats.total_views == 0
        assert stats.total_unique_visitors == 0
        assert stats.intervals == []
        assert stats.start_date is None
        assert stats.end_date is None
        storage.query_by_day.assert_awaited_once_with(Dimension.OVERVIEW, 6)

    @pytest.mark.parametrize("period,days", [("30d", 29), ("3m", 89), ("6m", 179), ("12m", 364)])
    def test_daily_periods_pass_look_back(self, period, days):
        storage = _storage(daily=[{"date": "2024-05-01", "views": 1, "unique_visitors": 1}])
        run_async(StatsAggregator(storage).get_overview(period))
        storage.query_by_day.assert_awaited_once_with(Dimension.OVERVIEW, days)

    def test_invalid_period_makes_no_query(self):
        storage = _storage()

        with pytest.raises(InvalidPeriodError):
            run_async(StatsAggregator(storage).get_overview("2y"))

        storage.query_last_24_hours.assert_not_called()
        storage.query_by_day.assert_not_called()

    def test_totals_match_sum_of_intervals(self):
        storage = _storage(daily=[
            {"date": f"2024-05-0{i}", "views": i * 3, "unique_visitors": i} for i in range(1, 8)
        ])
        stats = run_async(StatsAggregator(storage).get_overview("7d"))
        assert stats.total_views == sum(b.views for b in stats.intervals)
        assert stats.total_unique_visitors == sum(b.visitors for b in stats.intervals)


class TestDevices:
    """Test mobile/desktop stats."""

    def test_24h_uses_hourly_device_query(self):
        storage = _storage(hourly=[
            {"hour": "2024-05-01 10:00:00", "mobile_views": 3, "mobile_visitors": 2,
             "desktop_views": 5, "desktop_visitors": 4},
            {"hour": "2024-05-01 11:00:00", "mobile_views": 1, "mobile_visitors": 1,
             "desktop_views": 0, "desktop_visitors": 0},
        ])

        stats = run_async(StatsAggregator(storage).get_devices("24h"))

        assert isinstance(stats, DeviceStatsResponse)
        storage.query_last_24_hours.assert_awaited_once_with(Dimension.DEVICES)
        assert stats.total_mobile_views == 4
        assert stats.total_mobile_visitors == 3
        assert stats.total_desktop_views == 5
        assert stats.total_desktop_visitors == 4
        assert stats.total_views == 9
        assert stats.total_unique_visitors == 7
        assert stats.start_date == H0
        assert stats.end_date == H1

    def test_daily_devices(self):
        storage = _storage(daily=[
            {"date": "2024-05-01", "mobile_views": 2, "mobile_visitors": 1,
             "desktop_views": 2, "desktop_visitors": 2},
        ])
        stats = run_async(StatsAggregator(storage).get_devices("30d"))
        assert stats.intervals[0].timestamp == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert stats.total_views == 4


class TestBreakdowns:
    """Test browser/OS/referrer/route/country stats."""

    @pytest.mark.parametrize("method,dimension", [
        ("get_browsers", Dimension.BROWSERS),
        ("get_operating_systems", Dimension.OPERATING_SYSTEMS),
        ("get_referrers", Dimension.REFERRERS),
        ("get_routes", Dimension.ROUTES),
        ("get_countries", Dimension.COUNTRIES),
    ])
    def test_each_dimension_queries_its_rows(self, method, dimension):
        storage = _storage(daily=[
            {"name": "a", "views": 7, "unique_visitors": 4},
            {"name": "b", "views": 3, "unique_visitors": 3},
        ])

        stats = run_async(getattr(StatsAggregator(storage), method)("7d"))

        assert isinstance(stats, BreakdownResponse)
        storage.query_by_day.assert_awaited_once_with(dimension, 6)
        assert [(s.name, s.views, s.visitors) for s in stats.breakdown] == [("a", 7, 4), ("b", 3, 3)]
        assert stats.total_views == 10
        assert stats.total_unique_visitors == 7

    def test_dates_come_from_window(self):
        storage = _storage(daily=[])
        stats = run_async(StatsAggregator(storage).get_browsers("7d"))

        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        assert stats.end_date == today
        assert stats.start_date == today - timedelta(days=6)
        assert stats.breakdown == []
        assert stats.total_views == 0

    def test_24h_breakdown_window_is_hourly(self):
        storage = _storage(hourly=[{"name": "/", "views": 1, "unique_visitors": 1}])
        stats = run_async(StatsAggregator(storage).get_routes("24h"))
        assert stats.end_date - stats.start_date == timedelta(hours=24)
        assert stats.end_date.minute == 0


class TestStorageFailures:
    """Test that storage failures abort the request."""

    def test_storage_error_propagates(self):
        storage = _storage()
        storage.query_by_day = AsyncMock(side_effect=StorageError("query:browsers", "D1 down"))

        with pytest.raises(StorageError):
            run_async(StatsAggregator(storage).get_browsers("7d"))

    def test_unexpected_error_is_wrapped(self):
        storage = _storage()
        storage.query_last_24_hours = AsyncMock(side_effect=ConnectionError("reset"))

        with pytest.raises(StorageError) as exc_info:
            run_async(StatsAggregator(storage).get_countries("24h"))
        assert exc_info.value.stage == "query:countries"

    @pytest.mark.parametrize("rows", [
        [{"date": "yesterday", "views": 1, "unique_visitors": 1}],
        [{"views": 1, "unique_visitors": 1}],
        [{"date": "2024-05-01", "views": "many", "unique_visitors": 1}],
    ])
    def test_malformed_rows_carry_stage(self, rows):
        storage = _storage(daily=rows)

        with pytest.raises(StorageError) as exc_info:
            run_async(StatsAggregator(storage).get_overview("7d"))
        assert exc_info.value.stage == "query:overview"
