"""HTTP client for the geo-IP country lookup service (ipinfo-style API)."""

import logging

import httpx

from .errors import GeoLookupFailedError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


class GeoClient:
    """Resolves a client IP to a country name.

    The service is optional. With no base URL or token the client is
    disabled and every lookup returns an empty string without a network
    call. A configured service that fails raises GeoLookupFailedError.
    """

    def __init__(
        self,
        base_url: str | None,
        token: str | None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.token = token or ""
        self.timeout = timeout
        self._transport = transport

        if not self.enabled:
            logger.info("Geo lookup base path or token is not set. Geo lookup will be disabled.")

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.token)

    async def lookup_country(self, ip: str) -> str:
        """Fetch the country for an IP.

        Returns:
            Country name, or "" when the service is disabled

        Raises:
            GeoLookupFailedError: On transport error, timeout, non-200 status
                or an undecodable body
        """
        if not self.enabled:
            return ""

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/{ip}",
                    params={"token": self.token},
                )
            except httpx.HTTPError as e:
                raise GeoLookupFailedError(f"failed to call geo API: {e}") from e

        if response.status_code != 200:
            raise GeoLookupFailedError(f"geo API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise GeoLookupFailedError(f"failed to decode geo response: {e}") from e

        if not isinstance(data, dict):
            raise GeoLookupFailedError("failed to decode geo response: expected an object")

        return data.get("country") or ""
