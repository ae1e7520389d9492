"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.db.tables import UserRow
from orderdesk.models.user import UserRecord
from orderdesk.repos.user_repo import normalize_email


class PgUserRepo:
    """Satisfies the UserRepo Protocol using SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_uid(self, uid: str) -> UserRecord | None:
        stmt = select(UserRow).where(UserRow.firebase_uid == uid)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_user(row) if row is not None else None

    async def get_by_id(self, user_id: int) -> UserRecord | None:
        row = await self._session.get(UserRow, user_id)
        return _row_to_user(row) if row is not None else None

    async def get_by_email(self, email: str) -> UserRecord | None:
        stmt = select(UserRow).where(UserRow.email == normalize_email(email)).limit(1)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_user(row) if row is not None else None

    async def add(
        self,
        *,
        uid: str,
        email: str,
        display_name: str | None = None,
        email_verified: bool = False,
    ) -> UserRecord:
        row = UserRow(
            firebase_uid=uid,
            email=normalize_email(email),
            display_name=display_name,
            email_verified=email_verified,
            role="N/A",
            is_active=True,
            organization_id=None,
            last_login_at=datetime.now(UTC),
        )
        self._session.add(row)
        await self._session.flush()
        return _row_to_user(row)

    async def update_profile(
        self,
        uid: str,
        *,
        email: str,
        display_name: str | None,
        email_verified: bool,
    ) -> UserRecord | None:
        stmt = select(UserRow).where(UserRow.firebase_uid == uid)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        row.email = normalize_email(email)
        row.display_name = display_name or row.display_name
        row.email_verified = email_verified
        row.last_login_at = datetime.now(UTC)
        await self._session.flush()
        return _row_to_user(row)

    async def set_organization(
        self, user_id: int, organization_id: int | None, role: str
    ) -> UserRecord | None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(organization_id=organization_id, role=role)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(user_id)


def _row_to_user(row: UserRow) -> UserRecord:
    return UserRecord(
        id=row.id,
        uid=row.firebase_uid,
        email=row.email,
        display_name=row.display_name,
        email_verified=row.email_verified,
        role=row.role,
        organization_id=row.organization_id,
        is_active=row.is_active,
        created_at=row.created_at,
        last_login_at=row.last_login_at,
    )
