"""
Spot API application.

``create_app`` wires the spots, programs and health routers behind CORS,
a request timeout and a middleware that tags every log line of a request
with its ``request_id``. ``SpotError`` subclasses become JSON bodies carrying
their stable ``error_type`` code.
"""

import time
import uuid
from contextlib import asynccontextmanager, nullcontext

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from spot_tracker.api.dependencies import cleanup_dependencies
from spot_tracker.api.middleware.timeout import TimeoutMiddleware
from spot_tracker.api.routes import health, programs, spots
from spot_tracker.config.settings import Settings, get_settings
from spot_tracker.observability.tracing import (
    get_tracer,
    is_tracing_enabled,
    setup_tracing,
    traced,
)
from spot_tracker.spots.errors import SpotError, StoreError

logger = structlog.get_logger(__name__)

API_VERSION = "0.1.0"

_DESCRIPTION = """
Live amateur-radio activation spots aggregated from POTA, RBN and SOTA,
plus participant self-spots.

## Authentication

Participant endpoints read the `X-Participant-ID` and `X-Callsign` headers
set by the gateway. Admin endpoints require the `X-API-KEY` header.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.tracing_enabled and not is_tracing_enabled():
        setup_tracing(settings.otel_service_name, settings.otel_exporter_otlp_endpoint)

    logger.info("Spot API started", environment=settings.environment)
    yield

    await cleanup_dependencies()
    logger.info("Spot API stopped")


def _request_id(request: Request) -> str:
    """Reuse the caller's correlation id when it sent one."""
    for header in ("X-Request-ID", "X-Correlation-ID"):
        value = request.headers.get(header)
        if value:
            return value
    return str(uuid.uuid4())


def _add_request_context(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = _request_id(request)
        structlog.contextvars.bind_contextvars(request_id=request_id)
        route = f"{request.method} {request.url.path}"

        span_scope = (
            traced(
                get_tracer("spot-tracker.api"),
                route,
                {"http.method": request.method, "http.route": request.url.path},
            )
            if is_tracing_enabled()
            else nullcontext()
        )

        started = time.perf_counter()
        try:
            with span_scope as span:
                response = await call_next(request)
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                if span is not None:
                    span.set_attribute("http.status_code", response.status_code)

            response.headers["X-Request-ID"] = request_id
            logger.info(
                "HTTP request",
                route=route,
                status_code=response.status_code,
                duration_ms=elapsed_ms,
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def _add_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SpotError)
    async def spot_error(request: Request, exc: SpotError):
        if isinstance(exc, StoreError):
            logger.error(
                "Spot store failure",
                path=request.url.path,
                operation=exc.operation,
                error=str(exc.cause),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error_type": exc.code},
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error("Unhandled exception", path=request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )


def _allowed_origins(settings: Settings) -> list[str]:
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Build the spot API with its middleware stack and routers."""
    settings = get_settings()

    app = FastAPI(
        title="Spot Tracker API",
        description=_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Database connectivity"},
            {"name": "spots", "description": "Aggregated and self-submitted activation spots"},
            {"name": "programs", "description": "Award programs spots can belong to"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(settings),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    # Sits inside the request context so timed-out requests are still logged
    if settings.request_timeout_seconds > 0:
        app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)

    _add_request_context(app)
    _add_error_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(spots.router, tags=["spots"])
    app.include_router(programs.router, tags=["programs"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": "Spot Tracker API", "version": API_VERSION, "docs": "/docs"}

    return app
