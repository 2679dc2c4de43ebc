"""
ASGI middleware components for FastAPI applications.

Correlation id propagation and per-request metrics.
"""

import time
import uuid
from typing import Callable, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import get_logger
from .metrics import Metrics

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Reuse the caller's correlation id or mint one, expose it on
    ``request.state.correlation_id`` and echo it on the response.
    """

    def __init__(self, app: ASGIApp, header_name: str = CORRELATION_HEADER):
        """
        Args:
            app: The ASGI application
            header_name: Header carrying the correlation id
        """
        super().__init__(app)
        self.header_name = header_name
        self.logger = get_logger("correlation")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Attach the correlation id to the request and the response.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The response with the correlation id header set
        """
        correlation_id = request.headers.get(self.header_name)
        if not correlation_id:
            correlation_id = str(uuid.uuid4())
            self.logger.debug(f"Generated new correlation ID: {correlation_id}")

        request.state.correlation_id = correlation_id
        response = await call_next(request)
        response.headers[self.header_name] = correlation_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Emit a request counter and a latency histogram for every request,
    except for paths under ``exclude_paths``.
    """

    def __init__(self, app: ASGIApp, exclude_paths: Optional[List[str]] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Path prefixes that are not measured
        """
        super().__init__(app)
        self.exclude_paths = exclude_paths or []
        self.logger = get_logger("metrics")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Time the request and emit its metrics, failures counted as 500.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            The response
        """
        path = request.url.path
        if any(path.startswith(prefix) for prefix in self.exclude_paths):
            return await call_next(request)

        method = request.method
        status_code = 500
        start = time.perf_counter()
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception:
            self.logger.exception(f"Unhandled exception in {method} {path}")
            raise
        finally:
            Metrics.counter(
                "http_requests_total",
                {"method": method, "path": path, "status": str(status_code)},
            )
            Metrics.histogram(
                "http_request_duration_ms",
                (time.perf_counter() - start) * 1000,
                {"method": method, "path": path},
            )
