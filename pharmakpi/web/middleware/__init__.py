"""FastAPI middleware."""

from __future__ import annotations

from pharmakpi.web.middleware.prometheus import PrometheusMiddleware

__all__ = ["PrometheusMiddleware"]
