"""
Standalone FastAPI application for the analytics API.

Run with:
    uvicorn sheetdeck_analytics.app:create_app --factory
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import setup_analytics
from .config import AnalyticsConfig
from .core.storage import AnalyticsStorage
from .geo import GeoClient
from .middleware import RequestRejected, request_rejected_handler

logger = logging.getLogger(__name__)

CORS_MAX_AGE = 12 * 60 * 60  # 12 hours
HSTS_SECONDS = 31536000

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": "default-src 'self'",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def invalid_request_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies or parameters: 400 with a flat error message."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request : {problems}"})


def create_app(
    config: AnalyticsConfig | None = None,
    storage: AnalyticsStorage | None = None,
    geo: GeoClient | None = None,
) -> FastAPI:
    """Build the app. Fails before serving if the config is invalid."""
    config = config or AnalyticsConfig.from_env()
    configure_logging(config.log_level)

    analytics = setup_analytics(config, storage=storage, geo=geo)
    app = FastAPI(title="Sheetdeck Analytics")
    app.add_exception_handler(RequestRejected, request_rejected_handler)
    app.add_exception_handler(RequestValidationError, invalid_request_handler)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if config.environment != "TEST":
            response.headers["Strict-Transport-Security"] = f"max-age={HSTS_SECONDS}"
        return response

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        if request.url.path != "/healthz":
            latency_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {latency_ms:.1f}ms"
            )
        return response

    # Added last so it runs first and answers preflight requests
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_methods=["GET", "PUT", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Origin", "Content-Type", "Accept", "Authorization",
            "Cookie", "Set-Cookie", "X-Requested-With",
        ],
        max_age=CORS_MAX_AGE,
    )

    @app.get("/healthz")
    async def healthz():
        return {"status": "healthy"}

    app.include_router(analytics.router, prefix="/api/analytics")
    app.state.analytics = analytics

    logger.info(f"Analytics API ready in {config.environment} mode")
    return app
