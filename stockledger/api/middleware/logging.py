"""
Request logging middleware.

Each request gets an id (the caller's ``X-Request-ID`` when sent) that is
bound into the structlog context, so stock and movement events logged while
serving it can be traced back to the call.
"""

import time
import uuid
from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from stockledger.config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by load balancers; logged at debug only
QUIET_PATHS = frozenset({"/health", "/api/health", "/api/health/store"})


def _request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return supplied[:64] if supplied else uuid.uuid4().hex[:12]


def _completion_level(status: int) -> str:
    # 207 means a batch stopped part way; worth seeing next to the 4xx
    if status >= 500:
        return "error"
    if status >= 400 or status == 207:
        return "warning"
    return "info"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Binds request context and logs one completion event per request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        quiet = request.url.path in QUIET_PATHS
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")

        duration_ms = (time.perf_counter() - start) * 1000
        level = "debug" if quiet and response.status_code < 400 else _completion_level(
            response.status_code
        )
        getattr(logger, level)(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
