"""Request middleware for logging context.

Each request gets a request ID (taken from ``X-Request-ID`` or generated),
an optional trace ID from ``X-Trace-ID`` or a W3C ``traceparent`` header and
an optional correlation ID. The request ID is echoed back so a front-end can
quote it next to a "Failed to load comments" notice.
"""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.context import (
    clear_context,
    set_correlation_id,
    set_request_id,
    set_trace_id,
)


logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"
TRACEPARENT_HEADER = "traceparent"


def trace_id_from_headers(headers: Headers) -> str | None:
    """Explicit trace header first, then the trace-id field of traceparent."""
    explicit = headers.get(TRACE_ID_HEADER)
    if explicit:
        return explicit

    # {version}-{trace-id}-{parent-id}-{flags}
    parts = (headers.get(TRACEPARENT_HEADER) or "").split("-")
    return parts[1] if len(parts) == 4 else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the logging context for one request and logs its outcome.

    The viewer ID joins the context later, when the auth dependency has
    decoded the bearer token.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(exclude_paths or ())

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_trace_id(trace_id_from_headers(request.headers))
        set_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        request.state.request_id = request_id

        path = request.url.path
        logged = self.log_requests and not path.startswith(self.exclude_paths)
        if logged:
            logger.info("request_started", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=_elapsed_ms(started),
            )
            raise
        else:
            if logged:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "request_completed",
                    method=request.method,
                    path=path,
                    status_code=response.status_code,
                    duration_ms=_elapsed_ms(started),
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


__all__ = ["RequestContextMiddleware", "trace_id_from_headers"]
