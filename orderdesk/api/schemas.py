"""Pydantic schemas for the organization API.

Every response uses the same envelope:

    {"success": bool, "status"?: str, "data"?: {...}, "error"?: str, "code"?: str}

The *Out models are shared with OrderdeskClient, which validates the same
shapes on the way back in and converts them to domain objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from orderdesk.models.invitation import Invitation, InvitationAction, InvitationStatus
from orderdesk.models.join_request import JoinRequest, JoinRequestStatus
from orderdesk.models.organization import Organization
from orderdesk.models.status import (
    HasOrganization,
    OrganizationStatus,
    PendingInvitation,
    PendingRequest,
    StatusCode,
    StatusUser,
)
from orderdesk.models.user import UserRecord


class Envelope(BaseModel):
    success: bool
    status: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None
    code: str | None = None


# --- Outbound records ---


class StatusUserOut(BaseModel):
    id: int
    email: str
    organization_id: int | None = None
    role: str

    @classmethod
    def from_domain(cls, user: StatusUser) -> StatusUserOut:
        return cls(
            id=user.id,
            email=user.email,
            organization_id=user.organization_id,
            role=user.role,
        )

    def to_domain(self) -> StatusUser:
        return StatusUser(
            id=self.id,
            email=self.email,
            organization_id=self.organization_id,
            role=self.role,
        )


class OrganizationOut(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None

    @classmethod
    def from_domain(cls, org: Organization) -> OrganizationOut:
        return cls(id=org.id, name=org.name, slug=org.slug, description=org.description)

    def to_domain(self) -> Organization:
        return Organization(
            id=self.id, name=self.name, slug=self.slug, description=self.description
        )


class InvitationOut(BaseModel):
    id: int
    organization_id: int
    organization_name: str
    invited_email: str
    inviter_email: str | None = None
    token: str
    status: InvitationStatus
    assigned_role: str
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_domain(cls, inv: Invitation) -> InvitationOut:
        return cls(
            id=inv.id,
            organization_id=inv.organization_id,
            organization_name=inv.organization_name,
            invited_email=inv.invited_email,
            inviter_email=inv.inviter_email,
            token=inv.token,
            status=inv.status,
            assigned_role=inv.assigned_role,
            expires_at=inv.expires_at,
            created_at=inv.created_at,
        )

    def to_domain(self) -> Invitation:
        return Invitation(
            id=self.id,
            organization_id=self.organization_id,
            organization_name=self.organization_name,
            invited_email=self.invited_email,
            inviter_email=self.inviter_email,
            token=self.token,
            status=self.status,
            assigned_role=self.assigned_role,
            expires_at=self.expires_at,
            created_at=self.created_at,
        )


class JoinRequestOut(BaseModel):
    id: int
    organization_id: int | None = None
    organization_name: str
    requested_by: int
    status: JoinRequestStatus
    created_at: datetime

    @classmethod
    def from_domain(cls, req: JoinRequest) -> JoinRequestOut:
        return cls(
            id=req.id,
            organization_id=req.organization_id,
            organization_name=req.organization_name,
            requested_by=req.requested_by,
            status=req.status,
            created_at=req.created_at,
        )

    def to_domain(self) -> JoinRequest:
        return JoinRequest(
            id=self.id,
            organization_id=self.organization_id,
            organization_name=self.organization_name,
            requested_by=self.requested_by,
            status=self.status,
            created_at=self.created_at,
        )


class OrganizationStatusData(BaseModel):
    """The `data` payload of GET /api/user/organization-status."""

    user: StatusUserOut
    organization: OrganizationOut | None = None
    pending_invitations: list[InvitationOut] | None = None
    pending_requests: list[JoinRequestOut] | None = None

    @classmethod
    def from_domain(cls, status: OrganizationStatus) -> OrganizationStatusData:
        data = cls(user=StatusUserOut.from_domain(status.user))
        if isinstance(status, HasOrganization):
            data.organization = OrganizationOut.from_domain(status.organization)
        elif isinstance(status, PendingInvitation):
            data.pending_invitations = [
                InvitationOut.from_domain(i) for i in status.invitations
            ]
        elif isinstance(status, PendingRequest):
            data.pending_requests = [
                JoinRequestOut.from_domain(r) for r in status.requests
            ]
        return data


class SyncedUserOut(BaseModel):
    id: int
    uid: str
    email: str
    display_name: str | None = None
    email_verified: bool
    role: str
    organization_id: int | None = None
    is_new_user: bool

    @classmethod
    def from_domain(cls, user: UserRecord, *, is_new_user: bool) -> SyncedUserOut:
        return cls(
            id=user.id,
            uid=user.uid,
            email=user.email,
            display_name=user.display_name,
            email_verified=user.email_verified,
            role=user.role,
            organization_id=user.organization_id,
            is_new_user=is_new_user,
        )


class InvitationResponseOut(BaseModel):
    invitation_id: int
    status: InvitationStatus
    organization: OrganizationOut | None = None


# --- Inbound bodies ---


class CreateOrganizationIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=100)
    description: str | None = None


class CreateInvitationIn(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    role: str | None = None


class InvitationActionIn(BaseModel):
    action: InvitationAction


def status_envelope(status: OrganizationStatus) -> Envelope:
    return Envelope(
        success=True,
        status=StatusCode(status.code).value,
        data=OrganizationStatusData.from_domain(status).model_dump(
            mode="json", exclude_none=True
        ),
    )


def ok(data: BaseModel | dict[str, Any] | None = None) -> Envelope:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", exclude_none=True)
    return Envelope(success=True, data=data)


class SyncIn(BaseModel):
    """Optional POST /api/auth/sync body; the token is the source of truth."""

    uid: str | None = None
    display_name: str | None = Field(default=None, max_length=255)
