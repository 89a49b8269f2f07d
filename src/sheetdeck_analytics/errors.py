"""
Error taxonomy for the analytics core.

Validation errors are raised before any side effect. Enrichment and storage
errors abort a single operation and are never retried.
"""


class AnalyticsError(Exception):
    """Base class for analytics failures."""
    pass


class ConfigurationError(AnalyticsError):
    """Raised at startup when required configuration is missing."""
    pass


class InvalidPeriodError(AnalyticsError, ValueError):
    """Raised when a period key is not in the period table."""

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"invalid period: {period}")


class GeoLookupFailedError(AnalyticsError):
    """Raised when a configured geo-IP service fails or is unreachable."""
    pass


class NotFoundError(AnalyticsError, LookupError):
    """Raised when a cheatsheet slug does not resolve to an id."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"cheatsheet not found: {slug}")


class StorageError(AnalyticsError):
    """Wraps any persistence or query failure.

    Attributes:
        stage: Which operation failed (e.g. "store_pageview", "query:browsers")
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"{stage}: {message}")
