"""Test doubles and canned statuses for the flow tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from orderdesk.flow.session import SessionStore
from orderdesk.models.identity import Identity
from orderdesk.models.invitation import Invitation
from orderdesk.models.join_request import JoinRequest
from orderdesk.models.organization import Organization
from orderdesk.models.status import (
    HasOrganization,
    NoOrganization,
    OrganizationStatus,
    PendingInvitation,
    PendingRequest,
    StatusUser,
)
from orderdesk.services.identity_provider import LocalIdentityProvider
from orderdesk.services.token_revocations import InMemoryTokenRevocationList

USER = StatusUser(id=1, email="ana@example.com", organization_id=None, role="N/A")
ACME = Organization(id=42, name="Acme", slug="acme")


def no_org() -> NoOrganization:
    return NoOrganization(user=USER)


def has_org() -> HasOrganization:
    return HasOrganization(
        user=replace(USER, organization_id=ACME.id, role="admin"), organization=ACME
    )


def pending_invitation() -> PendingInvitation:
    invitation = Invitation(
        id=7,
        organization_id=ACME.id,
        organization_name=ACME.name,
        invited_email=USER.email,
        inviter_email="boss@acme.test",
        token="tok-7",
    )
    return PendingInvitation(user=USER, invitations=(invitation,))


def pending_request() -> PendingRequest:
    request = JoinRequest(id=3, organization_name="Globex", requested_by=USER.id)
    return PendingRequest(user=USER, requests=(request,))


class StaticResolver:
    """Answers every call with `outcome` (a status, or an exception to raise)."""

    def __init__(self, outcome: OrganizationStatus | Exception) -> None:
        self.outcome = outcome
        self.calls = 0

    async def resolve(self, identity: Identity) -> OrganizationStatus:
        self.calls += 1
        await asyncio.sleep(0)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class GatedResolver:
    """Each call blocks until the test releases it, in any order."""

    def __init__(self) -> None:
        self.pending: list[asyncio.Future[OrganizationStatus]] = []

    @property
    def calls(self) -> int:
        return len(self.pending)

    async def resolve(self, identity: Identity) -> OrganizationStatus:
        fut: asyncio.Future[OrganizationStatus] = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut

    def release(self, index: int, outcome: OrganizationStatus | Exception) -> None:
        fut = self.pending[index]
        if isinstance(outcome, Exception):
            fut.set_exception(outcome)
        else:
            fut.set_result(outcome)


async def signed_in_session(email: str = "ana@example.com") -> SessionStore:
    session = SessionStore(LocalIdentityProvider(InMemoryTokenRevocationList()))
    await session.sign_up(email, "correct-horse-battery")
    return session
