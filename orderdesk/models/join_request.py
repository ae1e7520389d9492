from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class JoinRequestStatus(StrEnum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class JoinRequest:
    """A user's request for an organization, reviewed by an administrator.

    Creation and review happen outside the onboarding flow; the flow only
    observes the current user's pending requests.  organization_id stays
    None until a reviewer links the request to an organization.
    """

    id: int
    organization_name: str
    requested_by: int
    organization_id: int | None = None
    status: JoinRequestStatus = JoinRequestStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
