"""
FastAPI middleware for observability.

Binds a correlation ID per request, records RED metrics and logs the
request lifecycle. Health and metrics probes are not logged.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import get_logger, correlation_id_context
from .metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
)

logger = get_logger(__name__)

SLOW_REQUEST_SECONDS = 2.0
_NUMERIC_SEGMENT = re.compile(r"/\d+")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, enable_request_logging: bool = True):
        super().__init__(app)
        self.enable_request_logging = enable_request_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")

        with correlation_id_context(incoming) as req_id:
            request.state.correlation_id = req_id

            # Numeric ids collapse to a placeholder to keep label cardinality bounded
            path = _NUMERIC_SEGMENT.sub("/{id}", request.url.path)
            method = request.method
            quiet = self._is_probe(request)

            http_requests_in_progress.labels(method=method, endpoint=path).inc()
            start_time = time.time()
            status = 500
            try:
                if self.enable_request_logging and not quiet:
                    logger.info("Request started", extra={"method": method, "path": path})

                response = await call_next(request)
                status = response.status_code
                response.headers["X-Request-ID"] = req_id
                return response

            except Exception as exc:
                logger.error(
                    "Request failed",
                    extra={
                        "method": method,
                        "path": path,
                        "error_type": type(exc).__name__,
                        "error_message": str(exc),
                    },
                    exc_info=True,
                )
                raise

            finally:
                duration = time.time() - start_time
                http_requests_total.labels(method=method, endpoint=path, status=status).inc()
                http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)
                http_requests_in_progress.labels(method=method, endpoint=path).dec()

                if self.enable_request_logging and not quiet:
                    logger.info(
                        "Request completed",
                        extra={
                            "method": method,
                            "path": path,
                            "status_code": status,
                            "duration_seconds": round(duration, 3),
                        },
                    )
                if duration > SLOW_REQUEST_SECONDS and not quiet:
                    logger.warning(
                        "Slow request detected",
                        extra={"method": method, "path": path, "duration_seconds": round(duration, 3)},
                    )

    def _is_probe(self, request: Request) -> bool:
        return request.url.path.startswith("/health") or request.url.path.startswith("/metrics")
