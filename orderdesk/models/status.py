"""Organization membership status: a tagged union of four variants.

Exactly one variant describes a user at any time, chosen with strict
precedence:

  1. HasOrganization    the stored user record references an organization
  2. PendingInvitation  at least one pending invitation for the user's email
  3. PendingRequest     at least one pending join request by the user
  4. NoOrganization     none of the above

Every variant is frozen.  A new resolution produces a new value; nothing
patches an existing one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar

from orderdesk.models.invitation import Invitation
from orderdesk.models.join_request import JoinRequest
from orderdesk.models.organization import Organization


class StatusCode(StrEnum):
    HAS_ORGANIZATION = "HAS_ORGANIZATION"
    PENDING_INVITATION = "PENDING_INVITATION"
    PENDING_REQUEST = "PENDING_REQUEST"
    NO_ORGANIZATION = "NO_ORGANIZATION"


@dataclass(frozen=True, slots=True)
class StatusUser:
    """The slice of the stored user record carried in every status."""

    id: int
    email: str
    organization_id: int | None
    role: str


@dataclass(frozen=True, slots=True)
class HasOrganization:
    code: ClassVar[StatusCode] = StatusCode.HAS_ORGANIZATION

    user: StatusUser
    organization: Organization


@dataclass(frozen=True, slots=True)
class PendingInvitation:
    code: ClassVar[StatusCode] = StatusCode.PENDING_INVITATION

    user: StatusUser
    invitations: tuple[Invitation, ...]

    def __post_init__(self) -> None:
        if not self.invitations:
            raise ValueError("PendingInvitation requires at least one invitation")


@dataclass(frozen=True, slots=True)
class PendingRequest:
    code: ClassVar[StatusCode] = StatusCode.PENDING_REQUEST

    user: StatusUser
    requests: tuple[JoinRequest, ...]

    def __post_init__(self) -> None:
        if not self.requests:
            raise ValueError("PendingRequest requires at least one request")


@dataclass(frozen=True, slots=True)
class NoOrganization:
    code: ClassVar[StatusCode] = StatusCode.NO_ORGANIZATION

    user: StatusUser


OrganizationStatus = HasOrganization | PendingInvitation | PendingRequest | NoOrganization
