"""User-initiated onboarding mutations.

Each action disables its own control (busy key) until the mutation and
the forced status refresh after it have both finished; a second submit
while busy raises MutationInProgress.  The backend offers no idempotency
key, so this is the only guard against double submission.

Mutation errors propagate to the caller unchanged and leave the flow
controller untouched.  When the refresh after a successful mutation lands
in has-organization, the gating episode is completed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from orderdesk.flow.controller import FlowController, FlowState
from orderdesk.flow.session import SessionStore
from orderdesk.flow.steps import FlowStep
from orderdesk.models.identity import Identity
from orderdesk.models.invitation import InvitationAction
from orderdesk.services.identity_provider import TokenMissing

logger = logging.getLogger(__name__)


class OnboardingBackend(Protocol):
    async def sync_user(self, identity: Identity) -> Any: ...
    async def respond_to_invitation(
        self, identity: Identity, invitation_id: int, action: InvitationAction
    ) -> Any: ...
    async def create_organization(
        self,
        identity: Identity,
        *,
        name: str,
        slug: str | None = None,
        description: str | None = None,
    ) -> Any: ...


class MutationInProgress(Exception):
    def __init__(self, key: str) -> None:
        super().__init__(f"{key} is already in progress")
        self.key = key


CREATE_ORGANIZATION = "create-organization"


def invitation_key(invitation_id: int) -> str:
    return f"invitation:{invitation_id}"


class OnboardingActions:
    def __init__(
        self,
        session: SessionStore,
        controller: FlowController,
        backend: OnboardingBackend,
    ) -> None:
        self._session = session
        self._controller = controller
        self._backend = backend
        self._busy: set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._busy

    async def accept_invitation(self, invitation_id: int) -> FlowState:
        return await self._mutate(
            invitation_key(invitation_id),
            lambda identity: self._backend.respond_to_invitation(
                identity, invitation_id, InvitationAction.ACCEPT
            ),
        )

    async def reject_invitation(self, invitation_id: int) -> FlowState:
        return await self._mutate(
            invitation_key(invitation_id),
            lambda identity: self._backend.respond_to_invitation(
                identity, invitation_id, InvitationAction.REJECT
            ),
        )

    async def create_organization(
        self,
        name: str,
        *,
        slug: str | None = None,
        description: str | None = None,
    ) -> FlowState:
        return await self._mutate(
            CREATE_ORGANIZATION,
            lambda identity: self._backend.create_organization(
                identity, name=name, slug=slug, description=description
            ),
        )

    async def _mutate(
        self, key: str, op: Callable[[Identity], Awaitable[Any]]
    ) -> FlowState:
        if key in self._busy:
            logger.debug("Ignoring duplicate submit key=%s", key)
            raise MutationInProgress(key)
        identity = self._session.identity
        if identity is None:
            raise TokenMissing("not signed in")

        self._busy.add(key)
        try:
            await op(identity)
            logger.info("Mutation %s done uid=%s, refreshing status", key, identity.uid)
            state = await self._controller.refresh(force=True)
            if state.step is FlowStep.HAS_ORGANIZATION:
                self._controller.complete_flow()
            return self._controller.state
        finally:
            self._busy.discard(key)
