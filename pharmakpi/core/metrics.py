"""Prometheus metrics for monitoring."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# HTTP Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
)

# Analysis metrics
analysis_runs_total = Counter(
    "analysis_runs_total",
    "Total analyses executed",
    ["analysis", "status"],  # status: success, failed
)

analysis_duration_seconds = Histogram(
    "analysis_duration_seconds",
    "Analysis execution duration (fetch + compute)",
    ["analysis"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

analysis_products_evaluated = Histogram(
    "analysis_products_evaluated",
    "Number of candidate products per analysis",
    ["analysis"],
    buckets=[0, 1, 10, 100, 500, 1000, 5000, 10000, 50000],
)

# Repository metrics
repository_queries_total = Counter(
    "repository_queries_total",
    "SELECT statements issued by the repository adapter",
    ["entity"],
)

# Application info
app_info = Gauge(
    "app_info",
    "Application information",
    ["version"],
)

app_uptime_seconds = Gauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)
