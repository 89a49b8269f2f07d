"""
Privacy-first analytics for the Sheetdeck cheatsheet catalog.

Usage:
    from sheetdeck_analytics import AnalyticsConfig, setup_analytics

    analytics = setup_analytics(AnalyticsConfig.from_env())

    # Include the API routes
    app.include_router(analytics.router, prefix="/api/analytics")

    # Guards raise RequestRejected; render it as {"error", "code"}
    from sheetdeck_analytics.middleware import RequestRejected, request_rejected_handler
    app.add_exception_handler(RequestRejected, request_rejected_handler)

    # Or use the services directly
    await analytics.recorder.record_pageview(event)
    stats = await analytics.aggregator.get_browsers("30d")
"""

from .aggregator import StatsAggregator
from .config import AnalyticsConfig
from .core.models import InteractionEvent, PageviewEvent, RecordOutcome
from .core.storage import AnalyticsStorage, D1Storage
from .enrichment import IdentityEnricher
from .errors import (
    AnalyticsError,
    ConfigurationError,
    GeoLookupFailedError,
    InvalidPeriodError,
    NotFoundError,
    StorageError,
)
from .geo import GeoClient
from .periods import PERIODS, PeriodWindow, resolve_period
from .recorder import EventRecorder
from .routes import create_analytics_router

__version__ = "0.1.0"
__all__ = [
    "setup_analytics", "Analytics", "AnalyticsConfig",
    "EventRecorder", "StatsAggregator", "IdentityEnricher", "GeoClient",
    "AnalyticsStorage", "D1Storage",
    "PageviewEvent", "InteractionEvent", "RecordOutcome",
    "PERIODS", "PeriodWindow", "resolve_period",
    "AnalyticsError", "ConfigurationError", "InvalidPeriodError",
    "GeoLookupFailedError", "NotFoundError", "StorageError",
]


class Analytics:
    """Main analytics interface: wired services plus the API router."""

    def __init__(
        self,
        config: AnalyticsConfig,
        storage: AnalyticsStorage | None = None,
        geo: GeoClient | None = None,
    ):
        self.config = config
        self.storage = storage or D1Storage(
            d1_database_id=config.d1_database_id,
            cf_account_id=config.cf_account_id,
            cf_api_token=config.cf_api_token,
            timeout=config.read_timeout_seconds,
        )
        self.geo = geo or GeoClient(
            config.geo_base_url,
            config.geo_token,
            timeout=config.geo_timeout_seconds,
        )
        self.enricher = IdentityEnricher(self.geo, config.ip_hash_salt)
        self.recorder = EventRecorder(self.storage, self.enricher)
        self.aggregator = StatsAggregator(self.storage)
        self.router = create_analytics_router(config, self.recorder, self.aggregator)


def setup_analytics(
    config: AnalyticsConfig,
    storage: AnalyticsStorage | None = None,
    geo: GeoClient | None = None,
) -> Analytics:
    """
    Set up analytics for the catalog backend.

    Args:
        config: Validated service configuration
        storage: Storage collaborator; defaults to D1Storage from config
        geo: Geo-IP client; defaults to one built from config

    Returns:
        Analytics instance with recorder, aggregator and router

    Raises:
        ConfigurationError: If the IP hashing salt is missing
    """
    return Analytics(config=config, storage=storage, geo=geo)
