from __future__ import annotations

import itertools
from typing import Protocol

from orderdesk.models.organization import Organization
from orderdesk.repos.user_repo import InMemoryUserRepo


class OrgRepo(Protocol):
    async def get_by_id(self, org_id: int) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def create_organization(
        self,
        *,
        name: str,
        slug: str,
        description: str | None,
        creator_id: int,
    ) -> Organization: ...


class InMemoryOrgRepo:
    """Organizations kept in dicts, sharing the user store for membership.

    create_organization performs both writes (the organization and the
    creator's membership) without an await in between, so a concurrent
    status check on the same event loop observes either neither or both.
    """

    def __init__(self, users: InMemoryUserRepo) -> None:
        self._users = users
        self._by_id: dict[int, Organization] = {}
        self._by_slug: dict[str, Organization] = {}
        self._ids = itertools.count(1)

    async def get_by_id(self, org_id: int) -> Organization | None:
        return self._by_id.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return self._by_slug.get(slug)

    async def create_organization(
        self,
        *,
        name: str,
        slug: str,
        description: str | None,
        creator_id: int,
    ) -> Organization:
        if slug in self._by_slug:
            raise ValueError("slug already exists")
        org = Organization(
            id=next(self._ids), name=name, slug=slug, description=description
        )
        if self._users._set_membership(creator_id, org.id, "admin") is None:
            raise KeyError("user not found")
        self._by_id[org.id] = org
        self._by_slug[org.slug] = org
        return org
