from __future__ import annotations

from fastapi.testclient import TestClient

from orderdesk.api import dependencies
from orderdesk.repos.registry import Repos
from tests.conftest import auth_header, mint_token, run, seed_org, seed_request, seed_user

ANA = auth_header(mint_token())


def _boss_header() -> dict[str, str]:
    return auth_header(mint_token(uid="uid-boss", email="boss@acme.test"))


def test_create_organization(client: TestClient, repos: Repos) -> None:
    user = seed_user(repos)

    resp = client.post(
        "/api/organizations",
        json={"name": "  Acme Corp ", "description": "Wholesale"},
        headers=ANA,
    )

    assert resp.status_code == 201
    org = resp.json()["data"]["organization"]
    assert org["name"] == "Acme Corp"
    assert org["slug"] == "acme-corp"
    assert org["description"] == "Wholesale"

    stored = run(repos.users.get_by_id(user.id))
    assert stored is not None
    assert stored.organization_id == org["id"]
    assert stored.role == "admin"
    assert dependencies.identity_provider.claims_for("uid-ana") == {
        "role": "admin",
        "organization_id": org["id"],
    }


def test_create_organization_twice_is_rejected(client: TestClient, repos: Repos) -> None:
    seed_user(repos)
    client.post("/api/organizations", json={"name": "Acme"}, headers=ANA)

    resp = client.post("/api/organizations", json={"name": "Other"}, headers=ANA)

    assert resp.status_code == 400
    assert resp.json()["code"] == "USER_ALREADY_HAS_ORGANIZATION"


def test_create_organization_slug_conflict(client: TestClient, repos: Repos) -> None:
    boss = seed_user(repos, uid="uid-boss", email="boss@acme.test")
    seed_org(repos, boss, name="Acme")
    seed_user(repos)

    resp = client.post("/api/organizations", json={"name": "ACME"}, headers=ANA)

    assert resp.status_code == 409
    assert resp.json()["code"] == "ORGANIZATION_SLUG_EXISTS"


def test_create_organization_validation(client: TestClient, repos: Repos) -> None:
    seed_user(repos)

    resp = client.post("/api/organizations", json={"name": ""}, headers=ANA)

    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"].startswith("name:")


def test_invite_and_accept(client: TestClient, repos: Repos) -> None:
    boss = seed_user(repos, uid="uid-boss", email="boss@acme.test")
    org = seed_org(repos, boss, name="Acme")
    ana = seed_user(repos)

    resp = client.post(
        "/api/organizations/invitations",
        json={"email": "Ana@Example.com", "role": "delivery"},
        headers=_boss_header(),
    )
    assert resp.status_code == 201
    invitation = resp.json()["data"]["invitation"]
    assert invitation["invited_email"] == "ana@example.com"
    assert invitation["assigned_role"] == "delivery"
    assert invitation["inviter_email"] == "boss@acme.test"

    listed = client.get("/api/organizations/invitations", headers=ANA).json()
    assert [i["id"] for i in listed["data"]["invitations"]] == [invitation["id"]]

    resp = client.put(
        f"/api/organizations/invitations/{invitation['id']}",
        json={"action": "accept"},
        headers=ANA,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "accepted"
    assert data["organization"]["id"] == org.id

    stored = run(repos.users.get_by_id(ana.id))
    assert stored is not None
    assert stored.organization_id == org.id
    assert stored.role == "delivery"

    status = client.get("/api/user/organization-status", headers=ANA).json()
    assert status["status"] == "HAS_ORGANIZATION"


def test_reject_then_respond_again_is_forbidden(client: TestClient, repos: Repos) -> None:
    boss = seed_user(repos, uid="uid-boss", email="boss@acme.test")
    seed_org(repos, boss, name="Acme")
    seed_user(repos)
    invitation = client.post(
        "/api/organizations/invitations",
        json={"email": "ana@example.com"},
        headers=_boss_header(),
    ).json()["data"]["invitation"]
    assert invitation["assigned_role"] == "service_client"
    url = f"/api/organizations/invitations/{invitation['id']}"

    first = client.put(url, json={"action": "reject"}, headers=ANA)
    assert first.status_code == 200
    assert "organization" not in first.json()["data"]

    second = client.put(url, json={"action": "accept"}, headers=ANA)
    assert second.status_code == 403
    assert second.json()["code"] == "INVITATION_FORBIDDEN"


def test_only_the_invitee_may_respond(client: TestClient, repos: Repos) -> None:
    boss = seed_user(repos, uid="uid-boss", email="boss@acme.test")
    seed_org(repos, boss, name="Acme")
    seed_user(repos)
    seed_user(repos, uid="uid-eve", email="eve@example.com")
    invitation = client.post(
        "/api/organizations/invitations",
        json={"email": "ana@example.com"},
        headers=_boss_header(),
    ).json()["data"]["invitation"]

    resp = client.put(
        f"/api/organizations/invitations/{invitation['id']}",
        json={"action": "accept"},
        headers=auth_header(mint_token(uid="uid-eve", email="eve@example.com")),
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "INVITATION_FORBIDDEN"


def test_unknown_invitation_is_404(client: TestClient, repos: Repos) -> None:
    seed_user(repos)

    resp = client.put(
        "/api/organizations/invitations/404", json={"action": "accept"}, headers=ANA
    )

    assert resp.status_code == 404
    assert resp.json()["code"] == "INVITATION_NOT_FOUND"


def test_invalid_action_is_a_validation_error(client: TestClient, repos: Repos) -> None:
    seed_user(repos)

    resp = client.put(
        "/api/organizations/invitations/1", json={"action": "maybe"}, headers=ANA
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"


def test_inviting_requires_membership(client: TestClient, repos: Repos) -> None:
    seed_user(repos)

    resp = client.post(
        "/api/organizations/invitations", json={"email": "bob@example.com"}, headers=ANA
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "USER_HAS_NO_ORGANIZATION"


def test_duplicate_invitation_is_409(client: TestClient, repos: Repos) -> None:
    boss = seed_user(repos, uid="uid-boss", email="boss@acme.test")
    seed_org(repos, boss, name="Acme")
    body = {"email": "bob@example.com"}

    client.post("/api/organizations/invitations", json=body, headers=_boss_header())
    resp = client.post("/api/organizations/invitations", json=body, headers=_boss_header())

    assert resp.status_code == 409
    assert resp.json()["code"] == "INVITATION_ALREADY_PENDING"


def test_list_requests(client: TestClient, repos: Repos) -> None:
    user = seed_user(repos)
    request = seed_request(repos, user)

    resp = client.get("/api/organizations/requests", headers=ANA)

    assert resp.status_code == 200
    [out] = resp.json()["data"]["requests"]
    assert out["id"] == request.id
    assert out["status"] == "pending"


def test_endpoints_require_a_stored_user(client: TestClient) -> None:
    resp = client.get("/api/organizations/requests", headers=ANA)
    assert resp.status_code == 404
    assert resp.json()["code"] == "USER_NOT_FOUND"
