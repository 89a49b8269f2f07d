"""
Core analytics module.

Contains the data models and the storage collaborator.
"""

from .models import (
    BreakdownResponse,
    DeviceBucket,
    DeviceStatsResponse,
    Dimension,
    DimensionStat,
    EventRequest,
    InteractionEvent,
    PageviewEvent,
    PageviewRequest,
    RecordOutcome,
    StatsResponse,
    TimeBucket,
    TimeSeriesResponse,
)
from .storage import AnalyticsStorage, D1Storage

__all__ = [
    "PageviewRequest", "EventRequest", "PageviewEvent", "InteractionEvent", "RecordOutcome",
    "Dimension", "DimensionStat", "TimeBucket", "DeviceBucket",
    "StatsResponse", "TimeSeriesResponse", "DeviceStatsResponse", "BreakdownResponse",
    "AnalyticsStorage", "D1Storage",
]
