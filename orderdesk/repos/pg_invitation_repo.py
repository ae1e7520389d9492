"""PostgreSQL implementation of InvitationRepo."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from orderdesk.db.tables import InvitationRow, OrganizationRow, UserRow
from orderdesk.models.invitation import Invitation, InvitationStatus, SetStatusResult
from orderdesk.repos.invitation_repo import check_transition
from orderdesk.repos.user_repo import normalize_email

_Inviter = aliased(UserRow)


def _denormalized() -> Select:
    # One query returns everything a list view needs: the organization name
    # and the inviter's email ride along with each invitation.
    return (
        select(InvitationRow, OrganizationRow.name, _Inviter.email)
        .join(OrganizationRow, InvitationRow.organization_id == OrganizationRow.id)
        .outerjoin(_Inviter, InvitationRow.invited_by == _Inviter.id)
    )


class PgInvitationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, invitation_id: int) -> Invitation | None:
        stmt = _denormalized().where(InvitationRow.id == invitation_id)
        row = (await self._session.execute(stmt)).one_or_none()
        return _to_invitation(*row) if row is not None else None

    async def add(
        self,
        *,
        organization_id: int,
        invited_email: str,
        inviter_id: int | None,
        assigned_role: str,
        expires_at: datetime,
    ) -> Invitation:
        row = InvitationRow(
            organization_id=organization_id,
            invited_email=normalize_email(invited_email),
            invited_by=inviter_id,
            invitation_token=Invitation.new_token(),
            assigned_role=assigned_role,
            status=InvitationStatus.PENDING.value,
            expires_at=expires_at,
        )
        self._session.add(row)
        await self._session.flush()
        invitation = await self.get_by_id(row.id)
        if invitation is None:
            raise KeyError("organization not found")
        return invitation

    async def list_pending_for_email(self, email: str) -> list[Invitation]:
        stmt = _denormalized().where(
            InvitationRow.invited_email == normalize_email(email),
            InvitationRow.status == InvitationStatus.PENDING.value,
        )
        rows = (await self._session.execute(stmt)).all()
        return [_to_invitation(*r) for r in rows]

    async def find_pending(self, email: str, organization_id: int) -> Invitation | None:
        stmt = _denormalized().where(
            InvitationRow.invited_email == normalize_email(email),
            InvitationRow.organization_id == organization_id,
            InvitationRow.status == InvitationStatus.PENDING.value,
        )
        row = (await self._session.execute(stmt.limit(1))).one_or_none()
        return _to_invitation(*row) if row is not None else None

    async def set_status(
        self,
        invitation_id: int,
        requester_email: str,
        status: InvitationStatus,
    ) -> SetStatusResult:
        invitation = await self.get_by_id(invitation_id)
        result = check_transition(invitation, requester_email)
        if invitation is None or result is not SetStatusResult.OK:
            return result

        if status is InvitationStatus.ACCEPTED:
            invitee = await self._session.execute(
                select(UserRow.id).where(UserRow.email == invitation.invited_email)
            )
            if invitee.first() is None:
                return SetStatusResult.NOT_FOUND

        # Conditional update: a concurrent responder that got here first
        # leaves zero matching rows and this one is refused.
        updated = await self._session.execute(
            update(InvitationRow)
            .where(
                InvitationRow.id == invitation_id,
                InvitationRow.status == InvitationStatus.PENDING.value,
            )
            .values(status=status.value)
        )
        if updated.rowcount == 0:
            return SetStatusResult.FORBIDDEN

        if status is InvitationStatus.ACCEPTED:
            await self._session.execute(
                update(UserRow)
                .where(UserRow.email == invitation.invited_email)
                .values(
                    organization_id=invitation.organization_id,
                    role=invitation.assigned_role,
                )
            )
        return SetStatusResult.OK


def _to_invitation(
    row: InvitationRow, organization_name: str, inviter_email: str | None
) -> Invitation:
    return Invitation(
        id=row.id,
        organization_id=row.organization_id,
        organization_name=organization_name,
        invited_email=row.invited_email,
        inviter_email=inviter_email,
        token=row.invitation_token,
        status=InvitationStatus(row.status),
        assigned_role=row.assigned_role,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )
