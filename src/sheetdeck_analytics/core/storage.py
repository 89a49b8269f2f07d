"""
Storage collaborator for analytics writes and aggregate queries.

The grouping by dimension and time bucket happens in the store. The
`D1Storage` adapter runs parameterized SQL against a Cloudflare D1 database
through its HTTP query API.
"""
import logging
from typing import Any, Optional, Protocol

import httpx

from ..errors import NotFoundError, StorageError
from .models import DailyRows, Dimension, HourlyRows

logger = logging.getLogger(__name__)


class AnalyticsStorage(Protocol):
    """Port consumed by EventRecorder and StatsAggregator."""

    async def store_pageview(self, fields: dict[str, Any]) -> None:
        """Persist one enriched pageview."""
        ...

    async def store_event(self, fields: dict[str, Any]) -> None:
        """Persist one interaction event."""
        ...

    async def resolve_cheatsheet_id(self, slug: str) -> str:
        """Return the cheatsheet id for a slug.

        Raises:
            NotFoundError: If no cheatsheet has this slug
        """
        ...

    async def query_last_24_hours(self, dimension: Dimension) -> HourlyRows:
        """Rows for the rolling last 24 hours."""
        ...

    async def query_by_day(self, dimension: Dimension, days: int) -> DailyRows:
        """Rows from the start of the day `days` days ago until now."""
        ...


# =============================================================================
# SQL
# =============================================================================

HOUR_BUCKET = "strftime('%Y-%m-%d %H:00:00', created_at)"
DAY_BUCKET = "date(created_at)"

LAST_24_HOURS = "created_at >= datetime('now', '-24 hours')"
LAST_N_DAYS = "date(created_at) >= date('now', ?)"

# Columns grouped for each breakdown dimension
BREAKDOWN_COLUMNS = {
    Dimension.BROWSERS: "browser",
    Dimension.OPERATING_SYSTEMS: "os",
    Dimension.REFERRERS: "referrer",
    Dimension.ROUTES: "pathname",
    Dimension.COUNTRIES: "country",
}

VIEWS = "COUNT(*) AS views, COUNT(DISTINCT hashed_ip) AS unique_visitors"

DEVICE_SPLIT = """
    SUM(CASE WHEN device = 'mobile' THEN 1 ELSE 0 END) AS mobile_views,
    COUNT(DISTINCT CASE WHEN device = 'mobile' THEN hashed_ip END) AS mobile_visitors,
    SUM(CASE WHEN device = 'desktop' THEN 1 ELSE 0 END) AS desktop_views,
    COUNT(DISTINCT CASE WHEN device = 'desktop' THEN hashed_ip END) AS desktop_visitors
"""


def build_summary_sql(dimension: Dimension, hourly: bool) -> str:
    """Build the aggregate query for a dimension and granularity."""
    where = LAST_24_HOURS if hourly else LAST_N_DAYS

    if dimension.is_time_series:
        bucket = HOUR_BUCKET if hourly else DAY_BUCKET
        alias = HourlyRows.bucket_column if hourly else DailyRows.bucket_column
        metrics = DEVICE_SPLIT if dimension is Dimension.DEVICES else VIEWS
        return f"""
            SELECT {bucket} AS {alias}, {metrics}
            FROM pageviews
            WHERE {where}
            GROUP BY {bucket}
            ORDER BY {alias} ASC
        """

    column = BREAKDOWN_COLUMNS[dimension]
    return f"""
        SELECT COALESCE({column}, '') AS name, {VIEWS}
        FROM pageviews
        WHERE {where}
        GROUP BY {column}
        ORDER BY views DESC
    """


def _nullable(value: Optional[str]) -> Optional[str]:
    """Empty strings are stored as NULL."""
    return value or None


class D1Storage:
    """AnalyticsStorage backed by Cloudflare D1."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.timeout = timeout
        self._transport = transport
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"

    async def _query(self, sql: str, params: Optional[list] = None, stage: str = "query") -> list[dict]:
        """Execute a SQL statement against D1 and return its rows."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/query",
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Content-Type": "application/json",
                    },
                    json={"sql": sql, "params": params or []},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise StorageError(stage, str(e)) from e

        if not isinstance(data, dict):
            raise StorageError(stage, f"unexpected D1 response: {type(data).__name__}")

        if not data.get("success"):
            raise StorageError(stage, f"D1 query failed: {data.get('errors')}")

        results = data.get("result", [])
        if results:
            return results[0].get("results", [])
        return []

    # =========================================================================
    # WRITES
    # =========================================================================

    async def store_pageview(self, fields: dict[str, Any]) -> None:
        await self._query(
            """
            INSERT INTO pageviews
                (pathname, browser, os, device, hashed_ip, user_agent, country, referrer)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                fields["route"],
                _nullable(fields.get("browser")),
                _nullable(fields.get("os")),
                _nullable(fields.get("device")),
                fields["hashed_ip"],
                fields["user_agent"],
                _nullable(fields.get("country")),
                _nullable(fields.get("referrer")),
            ],
            stage="store_pageview",
        )

    async def store_event(self, fields: dict[str, Any]) -> None:
        await self._query(
            """
            INSERT INTO events (cheatsheet_id, event_type, pathname, hashed_ip)
            VALUES (?, ?, ?, ?)
            """,
            [
                fields["cheatsheet_id"],
                fields["event_type"],
                fields["route"],
                fields["hashed_ip"],
            ],
            stage="store_event",
        )

    async def resolve_cheatsheet_id(self, slug: str) -> str:
        rows = await self._query(
            "SELECT id FROM cheatsheets WHERE slug = ? LIMIT 1",
            [slug],
            stage="resolve_cheatsheet_id",
        )
        if not rows:
            raise NotFoundError(slug)
        return str(rows[0]["id"])

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    async def query_last_24_hours(self, dimension: Dimension) -> HourlyRows:
        rows = await self._query(
            build_summary_sql(dimension, hourly=True),
            stage=f"query:{dimension.value}",
        )
        return HourlyRows(rows)

    async def query_by_day(self, dimension: Dimension, days: int) -> DailyRows:
        rows = await self._query(
            build_summary_sql(dimension, hourly=False),
            [f"-{days} days"],
            stage=f"query:{dimension.value}",
        )
        return DailyRows(rows)
