from __future__ import annotations

import pytest

from orderdesk.models.organization import SLUG_MAX_LENGTH, generate_slug
from orderdesk.repos.registry import Repos
from tests.conftest import run, seed_org, seed_user


@pytest.mark.parametrize(
    ("name", "slug"),
    [
        ("Acme", "acme"),
        ("Acme  Foods, Inc.", "acme-foods-inc"),
        ("  Pizzería -- Napoli  ", "pizzera-napoli"),
        ("!!!", ""),
    ],
)
def test_generate_slug(name: str, slug: str) -> None:
    assert generate_slug(name) == slug


def test_generate_slug_is_bounded() -> None:
    slug = generate_slug("word " * 40)
    assert len(slug) <= SLUG_MAX_LENGTH
    assert not slug.endswith("-")


def test_create_organization_makes_creator_admin(repos: Repos) -> None:
    user = seed_user(repos)

    org = run(
        repos.orgs.create_organization(
            name="Acme", slug="acme", description=None, creator_id=user.id
        )
    )

    stored = run(repos.users.get_by_id(user.id))
    assert stored is not None
    assert stored.organization_id == org.id
    assert stored.role == "admin"
    assert run(repos.orgs.get_by_slug("acme")) == org


def test_duplicate_slug_is_rejected(repos: Repos) -> None:
    user = seed_user(repos)
    other = seed_user(repos, uid="uid-bob", email="bob@example.com")
    seed_org(repos, user, name="Acme")

    with pytest.raises(ValueError):
        run(
            repos.orgs.create_organization(
                name="Acme 2", slug="acme", description=None, creator_id=other.id
            )
        )
    stored = run(repos.users.get_by_id(other.id))
    assert stored is not None
    assert stored.organization_id is None


def test_unknown_creator_stores_no_organization(repos: Repos) -> None:
    with pytest.raises(KeyError):
        run(
            repos.orgs.create_organization(
                name="Acme", slug="acme", description=None, creator_id=999
            )
        )
    assert run(repos.orgs.get_by_slug("acme")) is None


def test_set_organization_updates_membership(repos: Repos) -> None:
    user = seed_user(repos)

    updated = run(repos.users.set_organization(user.id, 7, "viewer"))

    assert updated is not None
    assert (updated.organization_id, updated.role) == (7, "viewer")
    assert run(repos.users.get_by_id(user.id)) == updated
    assert run(repos.users.set_organization(999, 7, "viewer")) is None
