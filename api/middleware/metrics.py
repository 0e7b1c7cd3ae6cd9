"""
Prometheus metrics middleware for the chat lead API.

Exposes /metrics endpoint with request counters, latency histograms,
and business metrics for protection, replies and CRM sync.
"""

import logging
import time

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    "chatlead_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "chatlead_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
ACTIVE_REQUESTS = Gauge(
    "chatlead_http_active_requests",
    "Currently active HTTP requests",
)

# Business metrics
PROTECTION_VERDICTS = Counter(
    "chatlead_protection_verdicts_total",
    "Bot protection verdicts",
    ["verdict"],
)
REPLY_FALLBACKS = Counter(
    "chatlead_reply_fallbacks_total",
    "Chat turns answered with the fixed fallback reply",
)
LEAD_SYNC_OUTCOMES = Counter(
    "chatlead_lead_sync_total",
    "CRM lead sync attempts by outcome",
    ["outcome"],
)


def record_protection_verdict(verdict: str):
    """Record a protection verdict (clean, suspicious, blocked, disabled)."""
    PROTECTION_VERDICTS.labels(verdict=verdict).inc()


def record_reply_fallback():
    """Record a fallback reply."""
    REPLY_FALLBACKS.inc()


def record_lead_sync(outcome: str):
    """Record a CRM sync outcome."""
    LEAD_SYNC_OUTCOMES.labels(outcome=outcome).inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        ACTIVE_REQUESTS.inc()
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            ACTIVE_REQUESTS.dec()
            raise

        duration = time.time() - start
        endpoint = request.url.path

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        ACTIVE_REQUESTS.dec()

        return response


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
