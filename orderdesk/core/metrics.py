"""Application metrics using the Prometheus client library.

One inventory of everything the service measures.  Other modules import
specific metrics and increment/observe them where the behavior lives.

HTTP metrics are populated by MetricsMiddleware.  The onboarding metrics
are incremented by the status resolver (server side), the invitation
endpoints, the flow controller (client side) and the revocation list.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Onboarding metrics
# ---------------------------------------------------------------------------

ORG_STATUS_RESOLUTIONS = Counter(
    "org_status_resolutions_total",
    "Organization status resolutions by outcome",
    # HAS_ORGANIZATION|PENDING_INVITATION|PENDING_REQUEST|NO_ORGANIZATION,
    # or user_not_found|error
    ["status"],
)

INVITATION_RESPONSES = Counter(
    "invitation_responses_total",
    "Invitation accept/reject attempts by result",
    ["action", "result"],  # action: accept|reject  result: ok|not_found|forbidden
)

FLOW_REDIRECTS = Counter(
    "flow_redirects_total",
    "Automatic redirects issued by the onboarding flow controller",
    ["step"],
)

TOKEN_REVOCATION_CHECKS = Counter(
    "token_revocation_checks_total",
    "Identity token revocation lookups by result",
    ["result"],  # "revoked" or "valid"
)
