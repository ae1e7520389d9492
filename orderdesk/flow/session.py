"""Session store: the current identity and the account operations around it.

The store is the only writer of the identity.  Listeners registered with
subscribe() are called whenever it changes (sign-in, sign-out, a rejected
token), which is how the flow controller learns that a new login started.

Every AuthenticationError, whatever the cause (expired, malformed,
revoked), leaves the store unauthenticated.  Nothing here retries.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from orderdesk.models.identity import Identity
from orderdesk.services.identity_provider import AuthenticationError, IdentityProvider

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Identity | None], None]
SyncHook = Callable[[Identity], Awaitable[Any]]


class SessionStore:
    def __init__(
        self, provider: IdentityProvider, *, sync: SyncHook | None = None
    ) -> None:
        self._provider = provider
        self._sync = sync
        self._listeners: list[IdentityListener] = []
        self.identity: Identity | None = None
        self.token: str | None = None
        # True until the stored token has been checked once.
        self.loading = True
        self.error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, identity: Identity | None, token: str | None) -> None:
        previous = self.identity
        self.identity = identity
        self.token = token
        self.loading = False
        if previous == identity:
            return
        logger.debug(
            "Identity changed uid=%s -> uid=%s",
            previous.uid if previous else None,
            identity.uid if identity else None,
        )
        for listener in list(self._listeners):
            listener(identity)

    async def _establish(self, token: str) -> Identity:
        identity = await self._provider.verify_token(token)
        self.token = token
        if self._sync is not None:
            try:
                await self._sync(identity)
            except AuthenticationError:
                raise
            except Exception:
                # Status resolution will report the missing record.
                logger.exception("User sync failed uid=%s", identity.uid)
        self.error = None
        self._publish(identity, token)
        logger.info("Signed in uid=%s", identity.uid, extra={"uid": identity.uid})
        return identity

    async def restore(self, token: str | None) -> Identity | None:
        """Initial identity check with a previously stored token, if any."""
        self.loading = True
        try:
            if not token:
                self._publish(None, None)
                return None
            try:
                return await self._establish(token)
            except AuthenticationError as e:
                logger.info("Stored token rejected code=%s", e.code)
                self._publish(None, None)
                return None
        finally:
            self.loading = False

    async def sign_in(self, email: str, password: str) -> Identity:
        try:
            token = await self._provider.sign_in(email, password)
            return await self._establish(token)
        except AuthenticationError as e:
            self.error = str(e)
            self._publish(None, None)
            raise

    async def sign_up(
        self, email: str, password: str, display_name: str | None = None
    ) -> Identity:
        token = await self._provider.sign_up(email, password, display_name)
        try:
            return await self._establish(token)
        except AuthenticationError as e:
            self.error = str(e)
            self._publish(None, None)
            raise

    async def sign_out(self) -> None:
        token = self.token
        uid = self.identity.uid if self.identity else None
        self._publish(None, None)
        if token:
            try:
                await self._provider.revoke_token(token)
            except AuthenticationError:
                logger.debug("Token was already unusable at sign-out")
        logger.info("Signed out uid=%s", uid, extra={"uid": uid})

    async def reset_password(self, email: str) -> None:
        await self._provider.send_password_reset(email)

    def invalidate(self, code: str) -> None:
        """Drop the session after the backend rejected our token."""
        if self.identity is None:
            return
        logger.warning(
            "Session invalidated uid=%s code=%s",
            self.identity.uid,
            code,
            extra={"uid": self.identity.uid},
        )
        self.error = code
        self._publish(None, None)
