"""
Period-bucketed stats for the analytics dashboard.

Every dimension follows the same path: resolve the period, run either the
hourly (24h) or the daily (N days) query, fold the rows into the response
shape while summing totals, then derive the start and end dates.

The two queries return different row shapes (the bucket column is `hour` in
one and `date` in the other). `fold_rows` is the single place that handles
both.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from .core.models import (
    BreakdownResponse,
    DailyRows,
    DeviceBucket,
    DeviceStatsResponse,
    Dimension,
    DimensionStat,
    HourlyRows,
    QueryResult,
    StatsResponse,
    TimeBucket,
    TimeSeriesResponse,
)
from .core.storage import AnalyticsStorage
from .errors import StorageError
from .periods import PeriodWindow, resolve_period, window_bounds

logger = logging.getLogger(__name__)

VIEW_COUNTERS = ("views", "visitors")
DEVICE_COUNTERS = ("mobile_views", "mobile_visitors", "desktop_views", "desktop_visitors")

# Storage column for each output counter
COUNTER_COLUMNS = {
    "views": "views",
    "visitors": "unique_visitors",
    "mobile_views": "mobile_views",
    "mobile_visitors": "mobile_visitors",
    "desktop_views": "desktop_views",
    "desktop_visitors": "desktop_visitors",
}


@dataclass
class Folded:
    """Output of fold_rows: uniform entries plus running totals."""
    entries: list = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)


def parse_bucket(value: Any) -> datetime:
    """Normalize a bucket value from storage to an aware UTC datetime.

    Accepts datetimes, dates, "YYYY-MM-DD" and "YYYY-MM-DD HH:MM[:SS]".
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value))

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def fold_rows(result: QueryResult, dimension: Dimension) -> Folded:
    """
    Fold hourly or daily rows into the uniform entries for a dimension.

    Time-series dimensions produce TimeBucket/DeviceBucket entries keyed on
    the variant's bucket column. Breakdown dimensions produce DimensionStat
    entries keyed on `name`. Totals are accumulated in the same pass.
    """
    if isinstance(result, (HourlyRows, DailyRows)):
        bucket_column = result.bucket_column
    else:
        raise TypeError(f"unsupported query result: {type(result).__name__}")

    counters = DEVICE_COUNTERS if dimension is Dimension.DEVICES else VIEW_COUNTERS
    folded = Folded(totals={name: 0 for name in counters})

    for row in result.rows:
        values = {name: int(row.get(COUNTER_COLUMNS[name]) or 0) for name in counters}
        for name, count in values.items():
            folded.totals[name] += count

        if dimension is Dimension.DEVICES:
            entry = DeviceBucket(timestamp=parse_bucket(row[bucket_column]), **values)
        elif dimension is Dimension.OVERVIEW:
            entry = TimeBucket(timestamp=parse_bucket(row[bucket_column]), **values)
        else:
            entry = DimensionStat(name=row.get("name") or "", **values)
        folded.entries.append(entry)

    return folded


class StatsAggregator:
    """Builds stats responses for each dashboard dimension."""

    def __init__(self, storage: AnalyticsStorage):
        self.storage = storage

    async def _fetch(self, dimension: Dimension, window: PeriodWindow) -> QueryResult:
        """Run the hourly or daily query for a window."""
        try:
            if window.is_hourly:
                return await self.storage.query_last_24_hours(dimension)
            return await self.storage.query_by_day(dimension, window.days)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"query:{dimension.value}", str(e)) from e

    async def get_stats(self, dimension: Dimension, period: str) -> StatsResponse:
        """
        Build the response for one dimension and period.

        Raises:
            InvalidPeriodError: Before any storage call, for unknown periods
            StorageError: If the query fails. No partial response is built.
        """
        window = resolve_period(period)

        try:
            result = await self._fetch(dimension, window)
        except StorageError as e:
            logger.error(f"Failed to fetch {dimension.value} stats for {period}: {e}")
            raise

        try:
            folded = fold_rows(result, dimension)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed {dimension.value} rows for {period}: {e!r}")
            raise StorageError(f"query:{dimension.value}", f"malformed rows: {e!r}") from e

        if dimension.is_time_series:
            # Dates come from the first and last buckets present
            if folded.entries:
                start_date = folded.entries[0].timestamp
                end_date = folded.entries[-1].timestamp
            else:
                start_date = end_date = None
        else:
            start_date, end_date = window_bounds(window)

        if dimension is Dimension.DEVICES:
            totals = folded.totals
            return DeviceStatsResponse(
                period=period,
                start_date=start_date,
                end_date=end_date,
                total_views=totals["mobile_views"] + totals["desktop_views"],
                total_unique_visitors=totals["mobile_visitors"] + totals["desktop_visitors"],
                total_mobile_views=totals["mobile_views"],
                total_mobile_visitors=totals["mobile_visitors"],
                total_desktop_views=totals["desktop_views"],
                total_desktop_visitors=totals["desktop_visitors"],
                intervals=folded.entries,
            )

        if dimension is Dimension.OVERVIEW:
            return TimeSeriesResponse(
                period=period,
                start_date=start_date,
                end_date=end_date,
                total_views=folded.totals["views"],
                total_unique_visitors=folded.totals["visitors"],
                intervals=folded.entries,
            )

        return BreakdownResponse(
            period=period,
            start_date=start_date,
            end_date=end_date,
            total_views=folded.totals["views"],
            total_unique_visitors=folded.totals["visitors"],
            breakdown=folded.entries,
        )

    # =========================================================================
    # PER-DIMENSION ENTRY POINTS
    # =========================================================================

    async def get_overview(self, period: str) -> TimeSeriesResponse:
        return await self.get_stats(Dimension.OVERVIEW, period)

    async def get_devices(self, period: str) -> DeviceStatsResponse:
        return await self.get_stats(Dimension.DEVICES, period)

    async def get_browsers(self, period: str) -> BreakdownResponse:
        return await self.get_stats(Dimension.BROWSERS, period)

    async def get_operating_systems(self, period: str) -> BreakdownResponse:
        return await self.get_stats(Dimension.OPERATING_SYSTEMS, period)

    async def get_referrers(self, period: str) -> BreakdownResponse:
        return await self.get_stats(Dimension.REFERRERS, period)

    async def get_routes(self, period: str) -> BreakdownResponse:
        return await self.get_stats(Dimension.ROUTES, period)

    async def get_countries(self, period: str) -> BreakdownResponse:
        return await self.get_stats(Dimension.COUNTRIES, period)
