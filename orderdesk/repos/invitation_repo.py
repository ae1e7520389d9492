from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from orderdesk.models.invitation import (
    Invitation,
    InvitationStatus,
    SetStatusResult,
)
from orderdesk.repos.org_repo import InMemoryOrgRepo
from orderdesk.repos.user_repo import InMemoryUserRepo, normalize_email


class InvitationRepo(Protocol):
    async def get_by_id(self, invitation_id: int) -> Invitation | None: ...
    async def add(
        self,
        *,
        organization_id: int,
        invited_email: str,
        inviter_id: int | None,
        assigned_role: str,
        expires_at: datetime,
    ) -> Invitation: ...
    async def list_pending_for_email(self, email: str) -> list[Invitation]: ...
    async def find_pending(
        self, email: str, organization_id: int
    ) -> Invitation | None: ...
    async def set_status(
        self,
        invitation_id: int,
        requester_email: str,
        status: InvitationStatus,
    ) -> SetStatusResult: ...


def check_transition(
    invitation: Invitation | None, requester_email: str
) -> SetStatusResult:
    """Shared precondition for set_status across implementations.

    Only the invited address may act, and only while the invitation is
    still pending.  Accepted and rejected are terminal.
    """
    if invitation is None:
        return SetStatusResult.NOT_FOUND
    if invitation.invited_email != normalize_email(requester_email):
        return SetStatusResult.FORBIDDEN
    if invitation.status.is_terminal:
        return SetStatusResult.FORBIDDEN
    return SetStatusResult.OK


class InMemoryInvitationRepo:
    def __init__(self, users: InMemoryUserRepo, orgs: InMemoryOrgRepo) -> None:
        self._users = users
        self._orgs = orgs
        self._by_id: dict[int, Invitation] = {}
        self._ids = itertools.count(1)

    async def get_by_id(self, invitation_id: int) -> Invitation | None:
        return self._by_id.get(invitation_id)

    async def add(
        self,
        *,
        organization_id: int,
        invited_email: str,
        inviter_id: int | None,
        assigned_role: str,
        expires_at: datetime,
    ) -> Invitation:
        org = await self._orgs.get_by_id(organization_id)
        if org is None:
            raise KeyError("organization not found")
        inviter = await self._users.get_by_id(inviter_id) if inviter_id else None

        invitation = Invitation(
            id=next(self._ids),
            organization_id=org.id,
            organization_name=org.name,
            invited_email=normalize_email(invited_email),
            inviter_email=inviter.email if inviter else None,
            token=Invitation.new_token(),
            assigned_role=assigned_role,
            expires_at=expires_at,
        )
        self._by_id[invitation.id] = invitation
        return invitation

    async def list_pending_for_email(self, email: str) -> list[Invitation]:
        email = normalize_email(email)
        return [
            inv
            for inv in self._by_id.values()
            if inv.invited_email == email and inv.status is InvitationStatus.PENDING
        ]

    async def find_pending(self, email: str, organization_id: int) -> Invitation | None:
        for inv in await self.list_pending_for_email(email):
            if inv.organization_id == organization_id:
                return inv
        return None

    async def set_status(
        self,
        invitation_id: int,
        requester_email: str,
        status: InvitationStatus,
    ) -> SetStatusResult:
        invitation = self._by_id.get(invitation_id)
        result = check_transition(invitation, requester_email)
        if invitation is None or result is not SetStatusResult.OK:
            return result

        invitee = None
        if status is InvitationStatus.ACCEPTED:
            invitee = await self._users.get_by_email(invitation.invited_email)
            if invitee is None:
                return SetStatusResult.NOT_FOUND

        # No await between the two writes below: readers on the same event
        # loop see the invitation and the membership change together.
        self._by_id[invitation_id] = replace(invitation, status=status)
        if invitee is not None:
            self._users._set_membership(
                invitee.id, invitation.organization_id, invitation.assigned_role
            )
        return SetStatusResult.OK
