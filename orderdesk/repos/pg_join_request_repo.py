"""PostgreSQL implementation of JoinRequestRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.db.tables import JoinRequestRow
from orderdesk.models.join_request import JoinRequest, JoinRequestStatus


class PgJoinRequestRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        organization_name: str,
        requested_by: int,
        organization_id: int | None = None,
    ) -> JoinRequest:
        row = JoinRequestRow(
            organization_name=organization_name,
            requested_by=requested_by,
            created_organization_id=organization_id,
            status=JoinRequestStatus.PENDING.value,
        )
        self._session.add(row)
        await self._session.flush()
        return _row_to_request(row)

    async def list_pending_for_user(self, user_id: int) -> list[JoinRequest]:
        stmt = select(JoinRequestRow).where(
            JoinRequestRow.requested_by == user_id,
            JoinRequestRow.status == JoinRequestStatus.PENDING.value,
        )
        rows = (await self._session.execute(stmt)).scalars()
        return [_row_to_request(r) for r in rows]


def _row_to_request(row: JoinRequestRow) -> JoinRequest:
    return JoinRequest(
        id=row.id,
        organization_name=row.organization_name,
        requested_by=row.requested_by,
        organization_id=row.created_organization_id,
        status=JoinRequestStatus(row.status),
        created_at=row.created_at,
    )
