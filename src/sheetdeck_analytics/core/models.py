"""
Pydantic models for analytics requests, storage rows and stats responses.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field

# =============================================================================
# Write Models
# =============================================================================

class PageviewRequest(BaseModel):
    """Incoming pageview body. IP and user-agent come from the request."""
    route: str
    referrer: str = ""


class EventRequest(BaseModel):
    """Incoming interaction event body (click, download, ...)."""
    route: str
    cheatsheet_slug: str
    event_type: str


class PageviewEvent(BaseModel):
    """A pageview submission before enrichment. Never persisted as-is."""
    route: str = ""
    referrer: str = ""
    client_ip: str = ""
    user_agent: str = ""


class InteractionEvent(BaseModel):
    """An interaction with a cheatsheet. event_type is not validated here."""
    route: str = ""
    cheatsheet_slug: str = ""
    event_type: str = ""
    client_ip: str = ""


class RecordOutcome(str, Enum):
    """Result of a write that did not fail.

    DROPPED means the submission lacked a required field and nothing was
    written. Failures are raised, never returned.
    """
    RECORDED = "recorded"
    DROPPED = "dropped"


# =============================================================================
# Dimensions and Storage Rows
# =============================================================================

class Dimension(str, Enum):
    """A stats breakdown axis."""
    OVERVIEW = "overview"
    DEVICES = "devices"
    BROWSERS = "browsers"
    OPERATING_SYSTEMS = "os"
    REFERRERS = "referrers"
    ROUTES = "routes"
    COUNTRIES = "countries"

    @property
    def is_time_series(self) -> bool:
        return self in (Dimension.OVERVIEW, Dimension.DEVICES)


@dataclass(frozen=True)
class HourlyRows:
    """Rows from a last-24-hours query, bucketed by the `hour` column."""
    rows: list[dict[str, Any]] = field(default_factory=list)
    bucket_column = "hour"


@dataclass(frozen=True)
class DailyRows:
    """Rows from a last-N-days query, bucketed by the `date` column."""
    rows: list[dict[str, Any]] = field(default_factory=list)
    bucket_column = "date"


QueryResult = Union[HourlyRows, DailyRows]


# =============================================================================
# Stats Models
# =============================================================================

class DimensionStat(BaseModel):
    """One row of a breakdown list (browser, OS, referrer, route, country)."""
    name: str
    views: int = 0
    visitors: int = 0


class TimeBucket(BaseModel):
    """Views and visitors in one hourly or daily bucket."""
    timestamp: datetime
    views: int = 0
    visitors: int = 0


class DeviceBucket(BaseModel):
    """Mobile/desktop split in one hourly or daily bucket."""
    timestamp: datetime
    mobile_views: int = 0
    mobile_visitors: int = 0
    desktop_views: int = 0
    desktop_visitors: int = 0


class StatsResponse(BaseModel):
    """Fields shared by every dimension response.

    Totals are always sums over the folded rows. Dates are None for an
    empty time series.
    """
    period: str
    start_date: datetime | None = None
    end_date: datetime | None = None
    total_views: int = 0
    total_unique_visitors: int = 0


class TimeSeriesResponse(StatsResponse):
    """Overview: views/visitors per bucket."""
    intervals: list[TimeBucket] = Field(default_factory=list)


class DeviceStatsResponse(StatsResponse):
    """Devices: mobile/desktop split per bucket."""
    total_mobile_views: int = 0
    total_mobile_visitors: int = 0
    total_desktop_views: int = 0
    total_desktop_visitors: int = 0
    intervals: list[DeviceBucket] = Field(default_factory=list)


class BreakdownResponse(StatsResponse):
    """Browsers, OS, referrers, routes, countries."""
    breakdown: list[DimensionStat] = Field(default_factory=list)
