"""Flow controller: the onboarding state machine.

Owns the last resolved OrganizationStatus for the signed-in identity and
turns it into a FlowStep, a redirect decision and a FlowState snapshot
for subscribers.

Refresh rules:

* single-flight: while a status fetch for the current uid is in flight,
  refresh() attaches to it instead of starting another one.  A forced
  refresh (after a mutation) always starts a new fetch, because the one
  in flight may have read the data before the mutation landed.
* ordering: every fetch carries a sequence number.  A completion whose
  number is not newer than the last applied one is discarded, so the
  newest request wins no matter which response arrives first.
* every fetch settles to a status or a FlowError; `checking` is only
  true while the newest issued fetch has not settled.

Redirects happen at most once per gating episode.  complete_flow() starts
a new episode; reset_redirection() re-arms the current one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from orderdesk.core.metrics import FLOW_REDIRECTS
from orderdesk.flow.navigation import Navigator
from orderdesk.flow.session import SessionStore
from orderdesk.flow.steps import FlowStep, derive_step, is_exempt, redirect_target
from orderdesk.models.identity import Identity
from orderdesk.models.invitation import Invitation
from orderdesk.models.join_request import JoinRequest
from orderdesk.models.organization import Organization
from orderdesk.models.status import (
    HasOrganization,
    OrganizationStatus,
    PendingInvitation,
    PendingRequest,
)
from orderdesk.services.identity_provider import AuthenticationError
from orderdesk.services.status_resolver import ResolutionError, UserNotFound

logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    """Anything that can resolve a status: the in-process resolver or the HTTP client."""

    async def resolve(self, identity: Identity) -> OrganizationStatus: ...


@dataclass(frozen=True, slots=True)
class FlowError:
    code: str
    message: str


@dataclass(frozen=True, slots=True)
class FlowState:
    step: FlowStep
    status: OrganizationStatus | None
    checking: bool
    error: FlowError | None
    last_refresh: datetime | None
    episode: int

    @property
    def is_flow_active(self) -> bool:
        return self.step is not FlowStep.HAS_ORGANIZATION

    @property
    def pending_invitations(self) -> tuple[Invitation, ...]:
        if isinstance(self.status, PendingInvitation):
            return self.status.invitations
        return ()

    @property
    def pending_requests(self) -> tuple[JoinRequest, ...]:
        if isinstance(self.status, PendingRequest):
            return self.status.requests
        return ()

    @property
    def current_organization(self) -> Organization | None:
        if isinstance(self.status, HasOrganization):
            return self.status.organization
        return None


StateListener = Callable[[FlowState], None]


class FlowController:
    def __init__(
        self,
        session: SessionStore,
        resolver: StatusSource,
        navigator: Navigator,
    ) -> None:
        self._session = session
        self._resolver = resolver
        self._navigator = navigator

        self._status: OrganizationStatus | None = None
        self._error: FlowError | None = None
        self._last_refresh: datetime | None = None

        self._seq = 0  # last issued fetch
        self._applied_seq = 0  # last settled fetch
        self._inflight: dict[str, tuple[int, asyncio.Task[FlowState]]] = {}
        self._tasks: set[asyncio.Task[FlowState]] = set()

        self._episode = 0
        self._redirected_episode: int | None = None

        self._listeners: list[StateListener] = []
        self._closed = False
        self._uid = session.identity.uid if session.identity else None
        self._unsubscribe = session.subscribe(self._on_identity_change)

    # --- Snapshot ---

    @property
    def checking(self) -> bool:
        return self._applied_seq < self._seq

    @property
    def step(self) -> FlowStep:
        return derive_step(self.checking, self._status)

    @property
    def state(self) -> FlowState:
        return FlowState(
            step=self.step,
            status=self._status,
            checking=self.checking,
            error=self._error,
            last_refresh=self._last_refresh,
            episode=self._episode,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if self._closed:
            return
        state = self.state
        for listener in list(self._listeners):
            listener(state)

    # --- Refresh ---

    def schedule_refresh(self, *, force: bool = False) -> asyncio.Future[FlowState]:
        """Start (or join) a status fetch for the current identity.

        Must be called with a running event loop.  The returned future
        resolves to the FlowState right after this fetch settles.
        """
        loop = asyncio.get_running_loop()
        identity = self._session.identity
        if identity is None or self._closed:
            done: asyncio.Future[FlowState] = loop.create_future()
            done.set_result(self.state)
            return done

        current = self._inflight.get(identity.uid)
        if current is not None and not force:
            logger.debug("Joining in-flight status check uid=%s", identity.uid)
            return current[1]

        self._seq += 1
        seq = self._seq
        task = loop.create_task(self._run(identity, seq))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._inflight[identity.uid] = (seq, task)
        logger.debug(
            "Status check issued uid=%s seq=%d force=%s", identity.uid, seq, force
        )
        self._notify()
        return task

    async def refresh(self, *, force: bool = False) -> FlowState:
        # Shielded: a caller giving up does not cancel the shared fetch.
        return await asyncio.shield(self.schedule_refresh(force=force))

    async def _run(self, identity: Identity, seq: int) -> FlowState:
        status: OrganizationStatus | None = None
        error: FlowError | None = None
        try:
            status, error = await self._resolve(identity)
        finally:
            entry = self._inflight.get(identity.uid)
            if entry is not None and entry[0] == seq:
                del self._inflight[identity.uid]
            if status is None and error is None:
                error = FlowError("REFRESH_INTERRUPTED", "Status check was interrupted")
            self._settle(identity.uid, seq, status, error)
        return self.state

    async def _resolve(
        self, identity: Identity
    ) -> tuple[OrganizationStatus | None, FlowError | None]:
        try:
            return await self._resolver.resolve(identity), None
        except UserNotFound as e:
            logger.error(
                "Signed-in identity has no user record uid=%s",
                identity.uid,
                extra={"uid": identity.uid},
            )
            return None, FlowError(
                e.code, "Your account could not be found. Please contact support."
            )
        except ResolutionError as e:
            logger.warning(
                "Status check failed uid=%s: %s", identity.uid, e, extra={"uid": identity.uid}
            )
            return None, FlowError(e.code, str(e))
        except AuthenticationError as e:
            current = self._session.identity
            if current is not None and current.uid == identity.uid:
                self._session.invalidate(e.code)
            return None, FlowError(e.code, "Your session has expired. Please sign in again.")
        except Exception:
            logger.exception(
                "Unexpected error during status check uid=%s",
                identity.uid,
                extra={"uid": identity.uid},
            )
            return None, FlowError(
                ResolutionError.code, "Could not load your organization status."
            )

    def _settle(
        self,
        uid: str,
        seq: int,
        status: OrganizationStatus | None,
        error: FlowError | None,
    ) -> None:
        if self._closed:
            logger.debug("Controller closed, dropping status check seq=%d", seq)
            return
        if seq <= self._applied_seq:
            logger.debug("Discarding stale status check uid=%s seq=%d", uid, seq)
            return

        self._applied_seq = seq
        self._status = status
        self._error = error
        self._last_refresh = datetime.now(UTC)

        step = self.step
        logger.info(
            "Status check settled uid=%s seq=%d step=%s error=%s",
            uid,
            seq,
            step,
            error.code if error else None,
            extra={"uid": uid, "step": step.value},
        )
        if error is None:
            self._maybe_redirect(uid, step)
        self._notify()

    # --- Redirects ---

    def _maybe_redirect(self, uid: str, step: FlowStep) -> None:
        target = redirect_target(step)
        if target is None:
            return
        path = self._navigator.current_path
        if is_exempt(path):
            logger.debug("No redirect from exempt route %s step=%s", path, step)
            return
        if self._redirected_episode == self._episode:
            logger.debug("Redirect already issued in episode=%d", self._episode)
            return

        self._redirected_episode = self._episode
        FLOW_REDIRECTS.labels(step=step.value).inc()
        logger.info(
            "Redirecting uid=%s step=%s %s -> %s",
            uid,
            step,
            path,
            target,
            extra={"uid": uid, "step": step.value},
        )
        self._navigator.navigate(target)

    def complete_flow(self) -> None:
        """End the current gating episode; the next one may redirect again."""
        self._episode += 1
        self._redirected_episode = None
        logger.info("Onboarding flow completed, episode=%d", self._episode)
        self._notify()

    def reset_redirection(self) -> None:
        """Re-arm redirects within the current episode."""
        self._redirected_episode = None

    # --- Lifecycle ---

    def _on_identity_change(self, identity: Identity | None) -> None:
        uid = identity.uid if identity else None
        if uid == self._uid:
            return
        self._uid = uid
        # Whatever is still in flight belongs to the previous identity.
        self._applied_seq = self._seq
        self._inflight.clear()
        self._status = None
        self._error = None
        self._last_refresh = None
        self._episode += 1
        self._redirected_episode = None
        self._notify()

    def close(self) -> None:
        """Detach from the session; late completions are ignored from now on."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self._listeners.clear()
        self._inflight.clear()
