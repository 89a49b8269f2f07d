"""
Period resolution for dashboard queries.

A period key selects both a look-back window and a bucket granularity:
"24h" is a rolling window bucketed by hour, every other key looks back a
whole number of UTC days and is bucketed by calendar day.

The "days" value is the look-back measured from the start of today, so
"30d" covers 29 whole days plus the partial current day.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .errors import InvalidPeriodError


@dataclass(frozen=True)
class PeriodWindow:
    """
    A resolved period.

    Attributes:
        key: The period token (24h, 7d, 30d, 3m, 6m, 12m)
        days: Whole days to look back (0 for the hourly 24h window)
    """
    key: str
    days: int

    @property
    def is_hourly(self) -> bool:
        return self.days == 0


PERIODS: dict[str, PeriodWindow] = {
    "24h": PeriodWindow("24h", 0),
    "7d": PeriodWindow("7d", 6),
    "30d": PeriodWindow("30d", 29),
    "3m": PeriodWindow("3m", 89),
    "6m": PeriodWindow("6m", 179),
    "12m": PeriodWindow("12m", 364),
}


def resolve_period(period: str) -> PeriodWindow:
    """
    Look up a period key.

    Raises:
        InvalidPeriodError: If the key is not in PERIODS. There is no default.
    """
    try:
        return PERIODS[period]
    except (KeyError, TypeError):
        raise InvalidPeriodError(period) from None


def window_bounds(
    window: PeriodWindow,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Compute (start, end) for a window in UTC.

    Hourly windows end at the current hour and start 24 hours earlier.
    Daily windows end at today's midnight and start `days` days earlier.
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    if window.is_hourly:
        end = now.replace(minute=0, second=0, microsecond=0)
        start = end - timedelta(hours=24)
    else:
        end = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start = end - timedelta(days=window.days)

    return start, end
