"""API middleware: request logging and HTTP metrics."""

import time

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils.metrics import HTTP_REQUEST_DURATION, HTTP_REQUESTS

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with timing under a request id.

    The id comes from the ``X-Request-ID`` header when the caller sends one and
    is bound to structlog's contextvars, so every event logged while handling
    the request carries it.
    """

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or f"{time.time_ns()}"
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            service_id=request.query_params.get("service_id"),
            client=request.client.host if request.client else None,
        )

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            elapsed = time.perf_counter() - start_time
            logger.info("request_completed", status_code=status_code, elapsed_ms=elapsed * 1000)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers["X-Response-Time"] = f"{elapsed * 1000:.2f}ms"
            return response
        except Exception as e:
            logger.error("request_failed", error=str(e))
            raise
        finally:
            HTTP_REQUESTS.labels(method=request.method, status=str(status_code)).inc()
            HTTP_REQUEST_DURATION.labels(method=request.method).observe(time.perf_counter() - start_time)
            structlog.contextvars.unbind_contextvars("request_id")
