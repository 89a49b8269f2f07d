"""
Identity enrichment for incoming pageviews.

Derives browser, OS and device class from the user-agent, resolves the
client IP to a country, and computes the salted visitor hash used for
unique-visitor counting. Raw IPs are never stored.
"""

import hashlib
import logging
from dataclasses import dataclass

from .errors import ConfigurationError
from .geo import GeoClient
from .user_agent import parse_user_agent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Enrichment:
    """Fields derived from a user-agent and client IP."""
    browser: str
    os: str
    device: str  # mobile, desktop
    country: str  # "" when geo lookup is disabled


class IdentityEnricher:
    """Derives visitor attributes and the privacy-preserving IP hash."""

    def __init__(self, geo: GeoClient, salt: str):
        if not salt:
            raise ConfigurationError("IP_HASH_SALT is not set")
        self.geo = geo
        self._salt = salt

    async def enrich(self, user_agent: str, client_ip: str) -> Enrichment:
        """
        Parse the user-agent and look up the country.

        Raises:
            GeoLookupFailedError: If the geo service is configured and fails
        """
        ua = parse_user_agent(user_agent)
        country = await self.geo.lookup_country(client_ip)

        return Enrichment(
            browser=ua.browser,
            os=ua.os,
            device=ua.device.value,
            country=country,
        )

    def hash_ip(self, ip: str) -> str:
        """One-way fingerprint: hex SHA-256 of the IP followed by the salt."""
        return hashlib.sha256(f"{ip}{self._salt}".encode()).hexdigest()
