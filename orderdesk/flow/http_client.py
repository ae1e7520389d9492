"""HTTP client for the organization API.

OrderdeskClient lets the onboarding core run against a remote server: it
implements the status source contract (resolve) and the mutation backend
(sync_user, respond_to_invitation, create_organization) on top of the
JSON envelope, converting error envelopes back into the same exceptions
the in-process services raise.  Codes it does not know, network failures
and non-envelope bodies surface as ApiRequestError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import ValidationError

from orderdesk.api.schemas import (
    Envelope,
    InvitationResponseOut,
    OrganizationOut,
    OrganizationStatusData,
    SyncedUserOut,
)
from orderdesk.models.identity import Identity
from orderdesk.models.invitation import InvitationAction
from orderdesk.models.organization import Organization
from orderdesk.models.status import (
    HasOrganization,
    NoOrganization,
    OrganizationStatus,
    PendingInvitation,
    PendingRequest,
    StatusCode,
)
from orderdesk.models.user import UserRecord
from orderdesk.services.identity_provider import (
    AuthenticationError,
    TokenExpired,
    TokenMalformed,
    TokenMissing,
    TokenRevoked,
)
from orderdesk.services.onboarding_service import (
    InvitationAlreadyPending,
    InvitationForbidden,
    InvitationNotFound,
    InvitationResponse,
    InviteeHasOrganization,
    NotAMember,
    OnboardingError,
    OnboardingValidationError,
    OrganizationConflict,
    SlugTaken,
    SyncResult,
)
from orderdesk.services.status_resolver import ResolutionError, UserNotFound

logger = logging.getLogger(__name__)

_AUTH_ERRORS: dict[str, type[AuthenticationError]] = {
    TokenMissing.code: TokenMissing,
    TokenExpired.code: TokenExpired,
    TokenRevoked.code: TokenRevoked,
}

_ONBOARDING_ERRORS: dict[str, type[OnboardingError]] = {
    cls.code: cls
    for cls in (
        OnboardingValidationError,
        OrganizationConflict,
        SlugTaken,
        NotAMember,
        InviteeHasOrganization,
        InvitationAlreadyPending,
        InvitationNotFound,
        InvitationForbidden,
    )
}


class ApiRequestError(Exception):
    """A non-2xx envelope (or no usable response at all) from the API."""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def _auth_error(code: str | None, message: str) -> AuthenticationError:
    return _AUTH_ERRORS.get(code or "", TokenMalformed)(message)


def _mutation_error(e: ApiRequestError, identity: Identity) -> Exception:
    """The in-process exception for an error envelope, if the code is known."""
    if e.code == UserNotFound.code:
        return UserNotFound(identity.uid)
    cls = _ONBOARDING_ERRORS.get(e.code)
    if cls is None:
        return e
    return cls(e.message)


class OrderdeskClient:
    def __init__(
        self,
        base_url: str,
        token_getter: Callable[[], str | None],
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_getter = token_getter
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> OrderdeskClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> Envelope:
        token = self._token_getter()
        if not token:
            raise TokenMissing("not signed in")

        try:
            response = await self._client.request(
                method, path, json=json, headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiRequestError(0, "NETWORK_ERROR", "Could not reach the server") from e

        try:
            envelope = Envelope.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning(
                "%s %s returned a non-envelope body status=%d",
                method,
                path,
                response.status_code,
            )
            raise ApiRequestError(
                response.status_code, "BAD_RESPONSE", "Unexpected response from the server"
            ) from None

        if response.status_code == 401:
            raise _auth_error(envelope.code, envelope.error or "Not authenticated")
        if response.is_error or not envelope.success:
            raise ApiRequestError(
                response.status_code,
                envelope.code or "UNKNOWN_ERROR",
                envelope.error or f"Request failed with status {response.status_code}",
            )
        return envelope

    async def _mutate(
        self,
        identity: Identity,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> Envelope:
        try:
            return await self._request(method, path, json=json)
        except ApiRequestError as e:
            mapped = _mutation_error(e, identity)
            if mapped is e:
                raise
            raise mapped from e

    # --- Status source ---

    async def resolve(self, identity: Identity) -> OrganizationStatus:
        try:
            envelope = await self._request("GET", "/api/user/organization-status")
        except ApiRequestError as e:
            if e.code == UserNotFound.code:
                raise UserNotFound(identity.uid) from None
            raise ResolutionError(e.message) from e

        try:
            return _status_from_envelope(envelope)
        except (ValueError, ValidationError) as e:
            logger.warning("Malformed organization status payload: %s", e)
            raise ResolutionError("Received a malformed organization status") from e

    # --- Mutation backend ---

    async def sync_user(self, identity: Identity) -> SyncResult:
        envelope = await self._mutate(
            identity, "POST", "/api/auth/sync", json={"uid": identity.uid}
        )
        out = SyncedUserOut.model_validate(envelope.data or {})
        user = UserRecord(
            id=out.id,
            uid=out.uid,
            email=out.email,
            display_name=out.display_name,
            email_verified=out.email_verified,
            role=out.role,
            organization_id=out.organization_id,
        )
        return SyncResult(user=user, is_new_user=out.is_new_user)

    async def respond_to_invitation(
        self, identity: Identity, invitation_id: int, action: InvitationAction
    ) -> InvitationResponse:
        envelope = await self._mutate(
            identity,
            "PUT",
            f"/api/organizations/invitations/{invitation_id}",
            json={"action": action.value},
        )
        out = InvitationResponseOut.model_validate(envelope.data or {})
        return InvitationResponse(
            invitation_id=out.invitation_id,
            status=out.status,
            organization=out.organization.to_domain() if out.organization else None,
        )

    async def create_organization(
        self,
        identity: Identity,
        *,
        name: str,
        slug: str | None = None,
        description: str | None = None,
    ) -> Organization:
        body: dict[str, Any] = {"name": name}
        if slug is not None:
            body["slug"] = slug
        if description is not None:
            body["description"] = description
        envelope = await self._mutate(
            identity, "POST", "/api/organizations", json=body
        )
        data = envelope.data or {}
        return OrganizationOut.model_validate(data.get("organization") or {}).to_domain()


def _status_from_envelope(envelope: Envelope) -> OrganizationStatus:
    code = StatusCode(envelope.status)
    data = OrganizationStatusData.model_validate(envelope.data or {})
    user = data.user.to_domain()

    if code is StatusCode.HAS_ORGANIZATION:
        if data.organization is None:
            raise ValueError("HAS_ORGANIZATION without organization")
        return HasOrganization(user=user, organization=data.organization.to_domain())
    if code is StatusCode.PENDING_INVITATION:
        return PendingInvitation(
            user=user,
            invitations=tuple(i.to_domain() for i in data.pending_invitations or ()),
        )
    if code is StatusCode.PENDING_REQUEST:
        return PendingRequest(
            user=user,
            requests=tuple(r.to_domain() for r in data.pending_requests or ()),
        )
    return NoOrganization(user=user)
