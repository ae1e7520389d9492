from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from uuid import uuid4


class InvitationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not InvitationStatus.PENDING


class InvitationAction(StrEnum):
    ACCEPT = "accept"
    REJECT = "reject"

    @property
    def target_status(self) -> InvitationStatus:
        if self is InvitationAction.ACCEPT:
            return InvitationStatus.ACCEPTED
        return InvitationStatus.REJECTED


class SetStatusResult(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


# Roles an inviter may hand out; anything else falls back to the default.
INVITABLE_ROLES = ("admin", "service_client", "delivery")
DEFAULT_INVITED_ROLE = "service_client"


@dataclass(frozen=True, slots=True)
class Invitation:
    """An invitation for an email address to join an organization.

    organization_name and inviter_email are denormalized at read time so a
    list of invitations can be rendered without a lookup per item.
    """

    id: int
    organization_id: int
    organization_name: str
    invited_email: str
    inviter_email: str | None
    token: str
    status: InvitationStatus = InvitationStatus.PENDING
    assigned_role: str = DEFAULT_INVITED_ROLE
    expires_at: datetime = field(
        default_factory=lambda: datetime.now(UTC) + timedelta(days=7)
    )
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def new_token() -> str:
        return str(uuid4())
