from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from orderdesk.models.invitation import Invitation, InvitationStatus, SetStatusResult
from orderdesk.repos.invitation_repo import check_transition
from orderdesk.repos.registry import Repos
from tests.conftest import run, seed_org, seed_user


def _invitation(**overrides: object) -> Invitation:
    base = Invitation(
        id=1,
        organization_id=1,
        organization_name="Acme",
        invited_email="ana@example.com",
        inviter_email=None,
        token="tok",
    )
    return replace(base, **overrides)  # type: ignore[arg-type]


def test_check_transition_not_found() -> None:
    assert check_transition(None, "ana@example.com") is SetStatusResult.NOT_FOUND


def test_check_transition_compares_normalized_email() -> None:
    assert check_transition(_invitation(), " ANA@example.com ") is SetStatusResult.OK
    assert check_transition(_invitation(), "eve@example.com") is SetStatusResult.FORBIDDEN


@pytest.mark.parametrize("status", [InvitationStatus.ACCEPTED, InvitationStatus.REJECTED])
def test_terminal_invitations_cannot_change(status: InvitationStatus) -> None:
    invitation = _invitation(status=status)
    assert check_transition(invitation, "ana@example.com") is SetStatusResult.FORBIDDEN


def _invite(repos: Repos, email: str = "ana@example.com", role: str = "delivery") -> Invitation:
    boss = seed_user(repos, uid="uid-boss", email="boss@acme.test")
    org = seed_org(repos, boss, name="Acme")
    return run(
        repos.invitations.add(
            organization_id=org.id,
            invited_email=email,
            inviter_id=boss.id,
            assigned_role=role,
            expires_at=datetime.now(UTC) + timedelta(days=7),
        )
    )


def test_add_denormalizes_names(repos: Repos) -> None:
    invitation = _invite(repos, email="Ana@Example.com")
    assert invitation.organization_name == "Acme"
    assert invitation.inviter_email == "boss@acme.test"
    assert invitation.invited_email == "ana@example.com"
    assert invitation.status is InvitationStatus.PENDING
    assert invitation.token


def test_add_for_unknown_organization_fails(repos: Repos) -> None:
    with pytest.raises(KeyError):
        run(
            repos.invitations.add(
                organization_id=404,
                invited_email="ana@example.com",
                inviter_id=None,
                assigned_role="admin",
                expires_at=datetime.now(UTC),
            )
        )


def test_accept_updates_invitation_and_membership_together(repos: Repos) -> None:
    ana = seed_user(repos)
    invitation = _invite(repos)

    result = run(
        repos.invitations.set_status(invitation.id, "ana@example.com", InvitationStatus.ACCEPTED)
    )

    assert result is SetStatusResult.OK
    stored = run(repos.invitations.get_by_id(invitation.id))
    assert stored is not None
    assert stored.status is InvitationStatus.ACCEPTED
    user = run(repos.users.get_by_id(ana.id))
    assert user is not None
    assert user.organization_id == invitation.organization_id
    assert user.role == "delivery"
    assert run(repos.invitations.list_pending_for_email("ana@example.com")) == []


def test_accept_without_a_user_record_is_not_found(repos: Repos) -> None:
    invitation = _invite(repos)

    result = run(
        repos.invitations.set_status(invitation.id, "ana@example.com", InvitationStatus.ACCEPTED)
    )

    assert result is SetStatusResult.NOT_FOUND
    stored = run(repos.invitations.get_by_id(invitation.id))
    assert stored is not None
    assert stored.status is InvitationStatus.PENDING


def test_reject_leaves_membership_alone(repos: Repos) -> None:
    ana = seed_user(repos)
    invitation = _invite(repos)

    result = run(
        repos.invitations.set_status(invitation.id, "ana@example.com", InvitationStatus.REJECTED)
    )

    assert result is SetStatusResult.OK
    user = run(repos.users.get_by_id(ana.id))
    assert user is not None
    assert user.organization_id is None


def test_find_pending_is_per_organization(repos: Repos) -> None:
    invitation = _invite(repos)
    found = run(repos.invitations.find_pending("ana@example.com", invitation.organization_id))
    assert found == invitation
    assert run(repos.invitations.find_pending("ana@example.com", 999)) is None
