from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

import pytest
from fastapi.testclient import TestClient

from orderdesk.api import dependencies
from orderdesk.main import app
from orderdesk.models.join_request import JoinRequest
from orderdesk.models.organization import Organization
from orderdesk.models.user import UserRecord
from orderdesk.repos.registry import Repos, in_memory_repos
from orderdesk.services import token_service
from orderdesk.services.identity_provider import LocalIdentityProvider
from orderdesk.services.token_revocations import InMemoryTokenRevocationList

T = TypeVar("T")


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Fresh in-memory stores for every test."""
    dependencies.memory_repos = in_memory_repos()


@pytest.fixture(autouse=True)
def reset_identity_provider() -> None:
    """Fresh accounts, custom claims and revocation list for every test."""
    dependencies.identity_provider = LocalIdentityProvider(InMemoryTokenRevocationList())


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def repos() -> Repos:
    return dependencies.memory_repos


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def mint_token(
    uid: str = "uid-ana",
    email: str = "ana@example.com",
    **claims: Any,
) -> str:
    """Create a valid ES256 identity token for testing."""
    return token_service.create_identity_token(uid=uid, email=email, claims=claims)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Seed helpers (in-memory repos only)
# ---------------------------------------------------------------------------


def seed_user(
    repos: Repos, uid: str = "uid-ana", email: str = "ana@example.com"
) -> UserRecord:
    return run(repos.users.add(uid=uid, email=email))


def seed_org(
    repos: Repos, creator: UserRecord, name: str = "Acme", slug: str | None = None
) -> Organization:
    return run(
        repos.orgs.create_organization(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            description=None,
            creator_id=creator.id,
        )
    )


def seed_request(repos: Repos, user: UserRecord, name: str = "Globex") -> JoinRequest:
    return run(repos.join_requests.add(organization_name=name, requested_by=user.id))
