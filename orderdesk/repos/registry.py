"""Repository bundles.

A Repos value groups the four repositories one unit of work needs.  The
in-memory bundle shares one user store across all four so organization
creation and invitation acceptance can update membership in place; the
Pg bundle shares one AsyncSession, so the same writes share a transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.repos.invitation_repo import InMemoryInvitationRepo, InvitationRepo
from orderdesk.repos.join_request_repo import InMemoryJoinRequestRepo, JoinRequestRepo
from orderdesk.repos.org_repo import InMemoryOrgRepo, OrgRepo
from orderdesk.repos.pg_invitation_repo import PgInvitationRepo
from orderdesk.repos.pg_join_request_repo import PgJoinRequestRepo
from orderdesk.repos.pg_org_repo import PgOrgRepo
from orderdesk.repos.pg_user_repo import PgUserRepo
from orderdesk.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True, slots=True)
class Repos:
    users: UserRepo
    orgs: OrgRepo
    invitations: InvitationRepo
    join_requests: JoinRequestRepo


def in_memory_repos() -> Repos:
    users = InMemoryUserRepo()
    orgs = InMemoryOrgRepo(users)
    return Repos(
        users=users,
        orgs=orgs,
        invitations=InMemoryInvitationRepo(users, orgs),
        join_requests=InMemoryJoinRequestRepo(),
    )


def pg_repos(session: AsyncSession) -> Repos:
    return Repos(
        users=PgUserRepo(session),
        orgs=PgOrgRepo(session),
        invitations=PgInvitationRepo(session),
        join_requests=PgJoinRequestRepo(session),
    )
