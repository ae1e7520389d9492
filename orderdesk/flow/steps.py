"""Flow steps, redirect targets and the route exemption list.

derive_step() is the whole transition function of the onboarding state
machine: a pure mapping from (checking, last known status) to a step.
"""

from __future__ import annotations

from enum import StrEnum

from orderdesk.models.status import OrganizationStatus, StatusCode


class FlowStep(StrEnum):
    LOADING = "loading"
    NO_ORGANIZATION = "no-organization"
    PENDING_INVITATION = "pending-invitation"
    PENDING_REQUEST = "pending-request"
    HAS_ORGANIZATION = "has-organization"


_STEP_BY_CODE = {
    StatusCode.HAS_ORGANIZATION: FlowStep.HAS_ORGANIZATION,
    StatusCode.PENDING_INVITATION: FlowStep.PENDING_INVITATION,
    StatusCode.PENDING_REQUEST: FlowStep.PENDING_REQUEST,
    StatusCode.NO_ORGANIZATION: FlowStep.NO_ORGANIZATION,
}

REDIRECT_TARGETS: dict[FlowStep, str] = {
    FlowStep.NO_ORGANIZATION: "/organization/create",
    FlowStep.PENDING_INVITATION: "/organization/invitations",
    FlowStep.PENDING_REQUEST: "/organization/requests",
}

EXEMPT_ROUTE_PREFIXES = (
    "/auth/login",
    "/auth/register",
    "/auth/reset-password",
    "/auth/verify-email",
    "/organization/create",
    "/organization/invitations",
    "/organization/requests",
)


def derive_step(checking: bool, status: OrganizationStatus | None) -> FlowStep:
    """Map fetch state and status to a step.

    A fetch in flight always reads as LOADING, whatever the previous
    status was.  No status yet also reads as LOADING: "not determined"
    is never the same as "no organization".
    """
    if checking or status is None:
        return FlowStep.LOADING
    return _STEP_BY_CODE[status.code]


def redirect_target(step: FlowStep) -> str | None:
    return REDIRECT_TARGETS.get(step)


def is_exempt(path: str) -> bool:
    """True when `path` sits under one of EXEMPT_ROUTE_PREFIXES.

    Matches whole path segments, so /organization/create/step-2 is exempt
    and /organization/created is not.  Query strings and fragments are
    ignored.
    """
    path = path.split("?", 1)[0].split("#", 1)[0].rstrip("/") or "/"
    return any(
        path == prefix or path.startswith(prefix + "/")
        for prefix in EXEMPT_ROUTE_PREFIXES
    )
