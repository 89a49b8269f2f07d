"""
Request guards for the analytics API: per-IP rate limiting and origin checks.

Both are FastAPI dependencies attached to the analytics router.
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import JSONResponse

from .config import AnalyticsConfig

logger = logging.getLogger(__name__)

RATE_LIMIT_WINDOW_SEC = 60

# Expired windows are swept once this many clients are tracked
CLEANUP_THRESHOLD = 1024


class RequestRejected(Exception):
    """A guard refused the request. Rendered as a top-level {"error", "code"} body."""

    def __init__(self, status_code: int, error: str, code: str):
        self.status_code = status_code
        self.error = error
        self.code = code
        super().__init__(f"{code}: {error}")


async def request_rejected_handler(request: Request, exc: RequestRejected) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "code": exc.code},
    )


def client_ip(request: Request) -> str:
    """Client IP: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client:
        return request.client.host
    return ""


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Fixed-window request limiter keyed by client IP. Thread-safe."""

    def __init__(self, limit: int, window_sec: float = RATE_LIMIT_WINDOW_SEC, clock=time.monotonic):
        self.limit = limit
        self.window_sec = window_sec
        self._clock = clock
        self._clients: dict[str, _Window] = {}
        self._lock = Lock()

    def _cleanup(self, now: float) -> None:
        """Remove expired windows."""
        expired = [ip for ip, w in self._clients.items() if now >= w.reset_at]
        for ip in expired:
            del self._clients[ip]

    def is_allowed(self, ip: str) -> bool:
        """Count a request from ip and report whether it is within the limit."""
        now = self._clock()

        with self._lock:
            window = self._clients.get(ip)
            if window is None or now >= window.reset_at:
                if window is None and len(self._clients) >= CLEANUP_THRESHOLD:
                    self._cleanup(now)
                self._clients[ip] = _Window(count=1, reset_at=now + self.window_sec)
                return True

            if window.count < self.limit:
                window.count += 1
                return True

            return False

    async def __call__(self, request: Request) -> None:
        ip = client_ip(request)
        if not self.is_allowed(ip):
            logger.info("Rate limit exceeded")
            raise RequestRejected(429, "Rate limit exceeded. Try again later.", "RATE_LIMIT_EXCEEDED")


def _scheme_host(url: str) -> str | None:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def is_origin_allowed(origin: str, allowed_origins: list[str]) -> bool:
    """Compare scheme://host of origin against each allowed origin."""
    candidate = _scheme_host(origin)
    if candidate is None:
        return False
    return any(_scheme_host(allowed) == candidate for allowed in allowed_origins)


class OriginValidator:
    """Rejects API calls from origins outside the allow list.

    Origin is checked first; Referer only when Origin is absent. In
    production one of the two headers is required.
    """

    def __init__(self, config: AnalyticsConfig):
        self.allowed_origins = config.allowed_origins
        self.require_header = config.is_production

    async def __call__(self, request: Request) -> None:
        origin = request.headers.get("origin", "")
        referer = request.headers.get("referer", "")

        if origin and not is_origin_allowed(origin, self.allowed_origins):
            raise RequestRejected(403, "Origin not allowed", "ORIGIN_NOT_ALLOWED")

        if not origin and referer and not is_origin_allowed(referer, self.allowed_origins):
            raise RequestRejected(403, "Referer not allowed", "REFERER_NOT_ALLOWED")

        if self.require_header and not origin and not referer:
            raise RequestRejected(
                403,
                "Origin or Referer header required in PROD environments",
                "MISSING_ORIGIN_REFERER",
            )
