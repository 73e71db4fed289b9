"""
FastAPI middleware for request tracing and logging.

Every request gets a short request id that is bound into the structlog
context, so the search stage logs (term extraction, vision fan-out,
candidate fetch, matching) of one request can be correlated.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

# Probe endpoints are hit every few seconds; log them at DEBUG only
_QUIET_PATHS = frozenset({"/health", "/live", "/ready"})


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds request tracing and logging.

    - Reuses an incoming X-Request-ID or generates a short one
    - Logs request completion with status and timing
    - Adds X-Request-ID and X-Response-Time headers to the response
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        path = request.url.path

        bind_context(request_id=request_id, method=request.method, path=path)
        log = logger.debug if path in _QUIET_PATHS else logger.info

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            log(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                query_params=dict(request.query_params) or None,
            )
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
            return response

        except Exception as e:
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        finally:
            # Context is per-task; clear so it cannot leak to the next request
            clear_context()
