"""Onboarding actions wired to the real services over in-memory repos."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

from orderdesk.flow.actions import (
    CREATE_ORGANIZATION,
    MutationInProgress,
    OnboardingActions,
    invitation_key,
)
from orderdesk.flow.controller import FlowController
from orderdesk.flow.navigation import InMemoryNavigator
from orderdesk.flow.session import SessionStore
from orderdesk.flow.steps import FlowStep
from orderdesk.models.identity import Identity
from orderdesk.models.invitation import Invitation
from orderdesk.repos.registry import Repos, in_memory_repos
from orderdesk.services.identity_provider import LocalIdentityProvider, TokenMissing
from orderdesk.services.onboarding_service import (
    InvitationNotFound,
    OnboardingService,
    OrganizationConflict,
)
from orderdesk.services.status_resolver import OrganizationStatusResolver
from orderdesk.services.token_revocations import InMemoryTokenRevocationList
from tests.conftest import run


@dataclass
class World:
    repos: Repos
    session: SessionStore
    controller: FlowController
    navigator: InMemoryNavigator
    actions: OnboardingActions


async def _world(path: str = "/dashboard") -> World:
    repos = in_memory_repos()
    provider = LocalIdentityProvider(InMemoryTokenRevocationList())
    service = OnboardingService(repos, provider)
    session = SessionStore(provider, sync=service.sync_user)
    await session.sign_up("ana@example.com", "correct-horse-battery", "Ana")

    navigator = InMemoryNavigator(path)
    controller = FlowController(session, OrganizationStatusResolver(repos), navigator)
    actions = OnboardingActions(session, controller, service)
    return World(repos, session, controller, navigator, actions)


async def _invite_ana(repos: Repos, org_name: str = "Acme") -> Invitation:
    boss = await repos.users.add(uid=f"uid-boss-{org_name}", email=f"boss@{org_name}.test")
    org = await repos.orgs.create_organization(
        name=org_name, slug=org_name.lower(), description=None, creator_id=boss.id
    )
    return await repos.invitations.add(
        organization_id=org.id,
        invited_email="ana@example.com",
        inviter_id=boss.id,
        assigned_role="delivery",
        expires_at=datetime.now(UTC) + timedelta(days=7),
    )


def test_accepting_an_invitation_completes_the_flow() -> None:
    async def scenario() -> None:
        world = await _world()
        invitation = await _invite_ana(world.repos)

        state = await world.controller.refresh()
        assert state.step is FlowStep.PENDING_INVITATION
        assert world.navigator.history == ["/organization/invitations"]
        episode = state.episode

        state = await world.actions.accept_invitation(invitation.id)

        assert state.step is FlowStep.HAS_ORGANIZATION
        assert state.current_organization is not None
        assert state.current_organization.name == "Acme"
        assert state.episode == episode + 1
        assert state.status is not None
        assert state.status.user.role == "delivery"

    run(scenario())


def test_rejecting_the_last_invitation_moves_to_no_organization() -> None:
    async def scenario() -> None:
        world = await _world(path="/organization/invitations")
        invitation = await _invite_ana(world.repos)
        await world.controller.refresh()

        state = await world.actions.reject_invitation(invitation.id)

        assert state.step is FlowStep.NO_ORGANIZATION
        # Still on an exempt route: no redirect.
        assert world.navigator.history == []

    run(scenario())


def test_creating_an_organization_completes_the_flow() -> None:
    async def scenario() -> None:
        world = await _world(path="/organization/create")
        state = await world.controller.refresh()
        assert state.step is FlowStep.NO_ORGANIZATION

        state = await world.actions.create_organization("Initech", description="TPS")

        assert state.step is FlowStep.HAS_ORGANIZATION
        assert state.current_organization is not None
        assert state.current_organization.slug == "initech"
        assert state.status is not None
        assert state.status.user.role == "admin"

    run(scenario())


def test_mutation_error_propagates_and_leaves_state_alone() -> None:
    async def scenario() -> None:
        world = await _world(path="/organization/invitations")
        await _invite_ana(world.repos)
        before = await world.controller.refresh()

        with pytest.raises(InvitationNotFound):
            await world.actions.accept_invitation(999)

        after = world.controller.state
        assert after.status == before.status
        assert after.last_refresh == before.last_refresh
        assert world.actions.is_busy(invitation_key(999)) is False

    run(scenario())


def test_second_create_is_rejected_by_the_backend() -> None:
    async def scenario() -> None:
        world = await _world(path="/organization/create")
        await world.actions.create_organization("Initech")
        with pytest.raises(OrganizationConflict):
            await world.actions.create_organization("Initech 2")

    run(scenario())


def test_signed_out_actions_raise() -> None:
    async def scenario() -> None:
        world = await _world()
        await world.session.sign_out()
        with pytest.raises(TokenMissing):
            await world.actions.create_organization("Initech")

    run(scenario())


class _BlockingBackend:
    def __init__(self) -> None:
        self.gate: asyncio.Future[None] | None = None
        self.calls = 0

    async def _wait(self) -> None:
        self.calls += 1
        self.gate = asyncio.get_running_loop().create_future()
        await self.gate

    async def sync_user(self, identity: Identity) -> None:
        return None

    async def respond_to_invitation(self, identity, invitation_id, action) -> None:
        await self._wait()

    async def create_organization(self, identity, *, name, slug=None, description=None) -> None:
        await self._wait()


def test_double_submit_is_rejected_while_busy() -> None:
    async def scenario() -> None:
        world = await _world(path="/organization/create")
        backend = _BlockingBackend()
        actions = OnboardingActions(world.session, world.controller, backend)

        first = asyncio.ensure_future(actions.create_organization("Initech"))
        await asyncio.sleep(0)
        assert actions.is_busy(CREATE_ORGANIZATION)

        with pytest.raises(MutationInProgress):
            await actions.create_organization("Initech")
        # Other controls stay usable.
        assert actions.is_busy(invitation_key(1)) is False

        assert backend.gate is not None
        backend.gate.set_result(None)
        await first

        assert backend.calls == 1
        assert actions.is_busy(CREATE_ORGANIZATION) is False

    run(scenario())
