"""
Configuration for the Sheetdeck analytics service.
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Request deadlines
WRITE_TIMEOUT_SECONDS = 10.0
READ_TIMEOUT_SECONDS = 30.0

DEFAULT_RATE_LIMIT_PER_MINUTE = 150


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class AnalyticsConfig:
    """Configuration for one analytics service instance.

    Validated on construction so a missing IP hashing salt fails service
    startup instead of the first write.
    """

    # Required
    ip_hash_salt: str

    # Storage (Cloudflare D1)
    d1_database_id: str = ""
    cf_account_id: str = ""
    cf_api_token: str = ""

    # Geo lookup; disabled unless both are set
    geo_base_url: str | None = None
    geo_token: str | None = None
    geo_timeout_seconds: float = 5.0

    # HTTP surface
    environment: str = "TEST"  # TEST, DEV, PROD
    allowed_origins: list[str] = field(default_factory=list)
    rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE
    write_timeout_seconds: float = WRITE_TIMEOUT_SECONDS
    read_timeout_seconds: float = READ_TIMEOUT_SECONDS

    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.ip_hash_salt:
            raise ConfigurationError("IP_HASH_SALT is not set in environment")

        if self.rate_limit_per_minute <= 0:
            raise ConfigurationError(
                f"rate_limit_per_minute must be positive, got {self.rate_limit_per_minute}"
            )

        if not self.has_geo:
            logger.info("Geo lookup is not configured; countries will not be recorded")

        if self.is_production and not self.allowed_origins:
            logger.warning("No allowed origins configured; all cross-origin API calls will be rejected")

    @property
    def has_geo(self) -> bool:
        """Check if the geo lookup service is configured."""
        return bool(self.geo_base_url and self.geo_token)

    @property
    def is_production(self) -> bool:
        return self.environment == "PROD"

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "AnalyticsConfig":
        """Build a config from environment variables, loading a .env first.

        A missing .env file is fine (production sets real variables).
        """
        if not load_dotenv(dotenv_path=env_file):
            logger.debug("No .env file found")

        try:
            rate_limit = int(os.getenv("RATE_LIMIT_PER_MINUTE", DEFAULT_RATE_LIMIT_PER_MINUTE))
        except ValueError:
            raise ConfigurationError("RATE_LIMIT_PER_MINUTE must be an integer") from None

        return cls(
            ip_hash_salt=os.getenv("IP_HASH_SALT", ""),
            d1_database_id=os.getenv("D1_DATABASE_ID", ""),
            cf_account_id=os.getenv("CF_ACCOUNT_ID", ""),
            cf_api_token=os.getenv("CF_API_TOKEN", ""),
            geo_base_url=os.getenv("IP_INFO_BASE_PATH") or None,
            geo_token=os.getenv("IP_INFO_TOKEN") or None,
            environment=os.getenv("ENV", "TEST"),
            allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS", "")),
            rate_limit_per_minute=rate_limit,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
