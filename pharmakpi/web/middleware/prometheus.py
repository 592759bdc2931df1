"""Prometheus metrics and request correlation middleware for FastAPI."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from pharmakpi.core.logging import set_request_id
from pharmakpi.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

REQUEST_ID_HEADER = "X-Request-ID"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP metrics and bind a request id to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics."""
        method = request.method
        endpoint = self._normalize_path(request.url.path)

        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            http_requests_total.labels(method=method, endpoint=endpoint, status="500").inc()
            raise
        finally:
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                time.time() - start_time
            )
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

        http_requests_total.labels(
            method=method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _normalize_path(self, path: str) -> str:
        """Normalize path by replacing numeric segments with a placeholder.

        Examples:
            /api/kpis/analyse-marge -> /api/kpis/analyse-marge
            /api/kpis/produits/42 -> /api/kpis/produits/{id}
        """
        path = path.split("?")[0]
        return "/".join("{id}" if part.isdigit() else part for part in path.split("/"))
