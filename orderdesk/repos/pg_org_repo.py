"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.db.tables import OrganizationRow, UserRow
from orderdesk.models.organization import Organization


class PgOrgRepo:
    """Satisfies the OrgRepo Protocol using SQLAlchemy.

    create_organization inserts the organization and assigns the creator
    inside the caller's session; both writes commit or roll back together.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: int) -> Organization | None:
        row = await self._session.get(OrganizationRow, org_id)
        return _row_to_org(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def create_organization(
        self,
        *,
        name: str,
        slug: str,
        description: str | None,
        creator_id: int,
    ) -> Organization:
        row = OrganizationRow(name=name, slug=slug, description=description)
        try:
            # Savepoint: a slug collision must not poison the outer transaction.
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise ValueError("slug already exists") from None

        result = await self._session.execute(
            update(UserRow)
            .where(UserRow.id == creator_id)
            .values(organization_id=row.id, role="admin")
        )
        if result.rowcount == 0:
            raise KeyError("user not found")
        return _row_to_org(row)


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        slug=row.slug,
        description=row.description,
        created_at=row.created_at,
    )
