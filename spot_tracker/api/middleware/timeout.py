"""
Per-request deadline.

A request that outlives the deadline is answered with 504 so it stops
holding a worker and a pooled database connection. ``/health`` is exempt so
load balancers can still reach it while the database is slow.
"""

import asyncio

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

EXEMPT_PATHS = ("/health",)


class TimeoutMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, timeout_seconds: float = 30.0):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(EXEMPT_PATHS):
            return await call_next(request)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            logger.warning("Request deadline exceeded", path=path, limit_s=self.timeout_seconds)
            return JSONResponse(
                status_code=504,
                content={"detail": "Request timed out", "error_type": "timeout"},
            )
