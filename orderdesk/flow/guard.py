"""Route guard: what to render for a path, given session and flow state.

Rules, first match wins:

  1. identity still loading, or signed in and a status check in flight on
     a non-exempt route                                   -> LOADING
  2. signed out, route not exempt                         -> NOTHING
     (the host is already redirecting to the login page)
  3. signed out, route exempt                             -> CHILDREN
  4. signed in, last status check failed, route not exempt -> ERROR
  5. signed in, flow active, route not exempt             -> FLOW_SCREEN
  6. otherwise                                            -> CONTENT

The guard's only state is a latch recording which uid already had its
initial status check dispatched.  It is cleared by a session listener on
every identity change, so each login triggers exactly one check however
often evaluate() runs, including a sign-out and sign-in with no render in
between.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from orderdesk.flow.controller import FlowController, FlowError, FlowState
from orderdesk.flow.session import SessionStore
from orderdesk.flow.steps import FlowStep, is_exempt
from orderdesk.models.identity import Identity

logger = logging.getLogger(__name__)


class GuardOutcome(StrEnum):
    LOADING = "loading"
    NOTHING = "nothing"
    CHILDREN = "children"
    ERROR = "error"
    FLOW_SCREEN = "flow-screen"
    CONTENT = "content"


@dataclass(frozen=True, slots=True)
class GuardDecision:
    outcome: GuardOutcome
    # The gating screen to show; set only for FLOW_SCREEN.
    step: FlowStep | None = None
    error: FlowError | None = None
    # Wrap content with the signed-in navigation/user menu.
    with_chrome: bool = False


class RouteGuard:
    def __init__(self, session: SessionStore, controller: FlowController) -> None:
        self._session = session
        self._controller = controller
        self._dispatched_for: str | None = None
        self._pending: asyncio.Future[FlowState] | None = None
        self._unsubscribe = session.subscribe(self._on_identity_change)

    def _on_identity_change(self, identity: Identity | None) -> None:
        if identity is None or identity.uid != self._dispatched_for:
            self._dispatched_for = None
            self._pending = None

    def close(self) -> None:
        self._unsubscribe()

    def _dispatch_initial_check(self) -> None:
        identity = self._session.identity
        if identity is None:
            return
        if self._session.loading or self._dispatched_for == identity.uid:
            return
        self._dispatched_for = identity.uid
        logger.debug("Dispatching initial status check uid=%s", identity.uid)
        self._pending = self._controller.schedule_refresh()

    def evaluate(self, path: str) -> GuardDecision:
        """Decide what to render at `path`.  Needs a running event loop."""
        self._dispatch_initial_check()

        identity = self._session.identity
        exempt = is_exempt(path)
        state = self._controller.state

        if self._session.loading or (
            identity is not None and state.checking and not exempt
        ):
            return GuardDecision(GuardOutcome.LOADING)

        if identity is None:
            if exempt:
                return GuardDecision(GuardOutcome.CHILDREN)
            return GuardDecision(GuardOutcome.NOTHING)

        if not exempt:
            if state.error is not None:
                return GuardDecision(GuardOutcome.ERROR, error=state.error)
            if state.is_flow_active:
                return GuardDecision(GuardOutcome.FLOW_SCREEN, step=state.step)

        return GuardDecision(GuardOutcome.CONTENT, with_chrome=True)

    async def settle(self) -> FlowState:
        """Wait for the initial status check dispatched by evaluate(), if any."""
        if self._pending is not None:
            await asyncio.shield(self._pending)
        return self._controller.state
