"""
HTTP routes for analytics writes and dashboard reads.

Writes (pageview, event) run under a short deadline, reads under a longer
one since they may scan a year of rows. Domain errors are mapped to HTTP
status codes here and nowhere else.
"""

import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..aggregator import StatsAggregator
from ..config import AnalyticsConfig
from ..core.models import (
    BreakdownResponse,
    DeviceStatsResponse,
    Dimension,
    EventRequest,
    InteractionEvent,
    PageviewEvent,
    PageviewRequest,
    TimeSeriesResponse,
)
from ..errors import (
    GeoLookupFailedError,
    InvalidPeriodError,
    NotFoundError,
    StorageError,
)
from ..middleware import OriginValidator, RateLimiter, client_ip
from ..recorder import EventRecorder

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PERIOD = "7d"


async def _with_deadline(operation: Awaitable[T], seconds: float, action: str) -> T:
    """Await an operation, translating domain errors to HTTP errors."""
    try:
        return await asyncio.wait_for(operation, timeout=seconds)
    except asyncio.TimeoutError:
        logger.error(f"{action} timed out after {seconds}s")
        raise HTTPException(status_code=504, detail=f"{action} timed out") from None
    except InvalidPeriodError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except (GeoLookupFailedError, StorageError) as e:
        logger.error(f"{action} failed: {e}")
        raise HTTPException(status_code=500, detail=f"{action} failed: {e}") from None


def create_analytics_router(
    config: AnalyticsConfig,
    recorder: EventRecorder,
    aggregator: StatsAggregator,
) -> APIRouter:
    """Create the analytics API router.

    Every route passes the origin check and the per-IP rate limiter.
    """
    router = APIRouter(
        dependencies=[
            Depends(OriginValidator(config)),
            Depends(RateLimiter(config.rate_limit_per_minute)),
        ],
    )

    # =========================================================================
    # WRITES
    # =========================================================================

    @router.post("/pageview", status_code=201)
    async def record_pageview(body: PageviewRequest, request: Request):
        event = PageviewEvent(
            route=body.route,
            referrer=body.referrer,
            client_ip=client_ip(request),
            user_agent=request.headers.get("user-agent", ""),
        )
        await _with_deadline(
            recorder.record_pageview(event),
            config.write_timeout_seconds,
            "Record page view",
        )
        return JSONResponse(
            status_code=201,
            content={"message": "Pageview recorded successfully"},
        )

    @router.post("/event", status_code=201)
    async def record_event(body: EventRequest, request: Request):
        event = InteractionEvent(
            route=body.route,
            cheatsheet_slug=body.cheatsheet_slug,
            event_type=body.event_type,
            client_ip=client_ip(request),
        )
        await _with_deadline(
            recorder.record_event(event),
            config.write_timeout_seconds,
            "Record event",
        )
        return JSONResponse(
            status_code=201,
            content={"message": "Event recorded successfully"},
        )

    # =========================================================================
    # READS
    # =========================================================================

    async def _stats(dimension: Dimension, period: str):
        return await _with_deadline(
            aggregator.get_stats(dimension, period),
            config.read_timeout_seconds,
            f"Fetch {dimension.value} stats",
        )

    @router.get("/overview", response_model=TimeSeriesResponse)
    async def overview(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.OVERVIEW, period)

    @router.get("/summary/devices", response_model=DeviceStatsResponse)
    async def devices(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.DEVICES, period)

    @router.get("/summary/browsers", response_model=BreakdownResponse)
    async def browsers(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.BROWSERS, period)

    @router.get("/summary/os", response_model=BreakdownResponse)
    async def operating_systems(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.OPERATING_SYSTEMS, period)

    @router.get("/summary/referrers", response_model=BreakdownResponse)
    async def referrers(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.REFERRERS, period)

    @router.get("/summary/routes", response_model=BreakdownResponse)
    async def route_stats(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.ROUTES, period)

    @router.get("/summary/countries", response_model=BreakdownResponse)
    async def countries(period: str = Query(DEFAULT_PERIOD)):
        return await _stats(Dimension.COUNTRIES, period)

    return router
