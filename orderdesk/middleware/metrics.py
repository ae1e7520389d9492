"""Prometheus instrumentation for every HTTP request.

Tracks in-flight requests, counts completions by method/path/status and
observes latency.  The URL path is the endpoint label; the organization
API has no high-cardinality path segments except invitation ids, which
are folded into a placeholder.
"""

from __future__ import annotations

import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from orderdesk.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")


def endpoint_label(path: str) -> str:
    """/api/organizations/invitations/17 -> /api/organizations/invitations/{id}"""
    return _NUMERIC_SEGMENT.sub("/{id}", path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collect Prometheus metrics for every HTTP request."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Scrapes of /metrics itself are not counted.
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = endpoint_label(request.url.path)
        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code: str | None = None

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.monotonic() - start
            ACTIVE_REQUESTS.dec()
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code if status_code is not None else "500",
            ).inc()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration)

        return response
