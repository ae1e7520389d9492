from __future__ import annotations

from fastapi.testclient import TestClient

from orderdesk.repos.registry import Repos
from tests.conftest import auth_header, mint_token, run


def test_first_sync_creates_the_user(client: TestClient, repos: Repos) -> None:
    resp = client.post("/api/auth/sync", headers=auth_header(mint_token()))

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["is_new_user"] is True
    assert data["uid"] == "uid-ana"
    assert data["email"] == "ana@example.com"
    assert data["role"] == "N/A"
    assert "organization_id" not in data

    stored = run(repos.users.get_by_uid("uid-ana"))
    assert stored is not None
    assert stored.id == data["id"]


def test_second_sync_updates_in_place(client: TestClient, repos: Repos) -> None:
    first = client.post("/api/auth/sync", headers=auth_header(mint_token())).json()
    second = client.post(
        "/api/auth/sync",
        json={"display_name": "Ana"},
        headers=auth_header(mint_token(email="ana@new.example.com")),
    ).json()

    assert second["data"]["is_new_user"] is False
    assert second["data"]["id"] == first["data"]["id"]
    assert second["data"]["email"] == "ana@new.example.com"
    assert second["data"]["display_name"] == "Ana"


def test_sync_rejects_a_foreign_uid(client: TestClient) -> None:
    resp = client.post(
        "/api/auth/sync", json={"uid": "uid-eve"}, headers=auth_header(mint_token())
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "UID_MISMATCH"


def test_sync_requires_a_token(client: TestClient) -> None:
    resp = client.post("/api/auth/sync")
    assert resp.status_code == 401
    assert resp.json()["code"] == "AUTH_TOKEN_MISSING"
