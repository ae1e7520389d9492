"""Organization onboarding endpoints.

  POST /api/organizations                     create, caller becomes admin
  GET  /api/organizations/invitations         caller's pending invitations
  POST /api/organizations/invitations         invite an email to caller's org
  PUT  /api/organizations/invitations/{id}    accept or reject
  GET  /api/organizations/requests            caller's pending join requests
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from orderdesk.api.dependencies import get_onboarding, require_identity
from orderdesk.api.errors import ApiError
from orderdesk.api.schemas import (
    CreateInvitationIn,
    CreateOrganizationIn,
    Envelope,
    InvitationActionIn,
    InvitationOut,
    InvitationResponseOut,
    JoinRequestOut,
    OrganizationOut,
    ok,
)
from orderdesk.models.identity import Identity
from orderdesk.services.onboarding_service import OnboardingError, OnboardingService
from orderdesk.services.status_resolver import UserNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


def _to_api_error(e: OnboardingError | UserNotFound) -> ApiError:
    if isinstance(e, UserNotFound):
        return ApiError(404, "USER_NOT_FOUND", "User not found in the database")
    return ApiError(e.http_status, e.code, str(e))


@router.post(
    "",
    response_model=Envelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_organization(
    body: CreateOrganizationIn,
    identity: Annotated[Identity, Depends(require_identity)],
    onboarding: Annotated[OnboardingService, Depends(get_onboarding)],
) -> Envelope:
    try:
        org = await onboarding.create_organization(
            identity, name=body.name, slug=body.slug, description=body.description
        )
    except (OnboardingError, UserNotFound) as e:
        raise _to_api_error(e) from None
    return ok({"organization": OrganizationOut.from_domain(org).model_dump(mode="json")})


@router.get(
    "/invitations", response_model=Envelope, response_model_exclude_none=True
)
async def list_invitations(
    identity: Annotated[Identity, Depends(require_identity)],
    onboarding: Annotated[OnboardingService, Depends(get_onboarding)],
) -> Envelope:
    try:
        invitations = await onboarding.list_pending_invitations(identity)
    except UserNotFound as e:
        raise _to_api_error(e) from None
    return ok(
        {
            "invitations": [
                InvitationOut.from_domain(i).model_dump(mode="json") for i in invitations
            ]
        }
    )


@router.post(
    "/invitations",
    response_model=Envelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    body: CreateInvitationIn,
    identity: Annotated[Identity, Depends(require_identity)],
    onboarding: Annotated[OnboardingService, Depends(get_onboarding)],
) -> Envelope:
    try:
        invitation = await onboarding.create_invitation(
            identity, email=body.email, role=body.role
        )
    except (OnboardingError, UserNotFound) as e:
        raise _to_api_error(e) from None
    return ok({"invitation": InvitationOut.from_domain(invitation).model_dump(mode="json")})


@router.put(
    "/invitations/{invitation_id}",
    response_model=Envelope,
    response_model_exclude_none=True,
)
async def respond_to_invitation(
    invitation_id: int,
    body: InvitationActionIn,
    identity: Annotated[Identity, Depends(require_identity)],
    onboarding: Annotated[OnboardingService, Depends(get_onboarding)],
) -> Envelope:
    """Accept or reject an invitation addressed to the caller's email."""
    try:
        response = await onboarding.respond_to_invitation(
            identity, invitation_id, body.action
        )
    except (OnboardingError, UserNotFound) as e:
        raise _to_api_error(e) from None
    return ok(
        InvitationResponseOut(
            invitation_id=response.invitation_id,
            status=response.status,
            organization=(
                OrganizationOut.from_domain(response.organization)
                if response.organization
                else None
            ),
        )
    )


@router.get("/requests", response_model=Envelope, response_model_exclude_none=True)
async def list_requests(
    identity: Annotated[Identity, Depends(require_identity)],
    onboarding: Annotated[OnboardingService, Depends(get_onboarding)],
) -> Envelope:
    try:
        requests = await onboarding.list_pending_requests(identity)
    except UserNotFound as e:
        raise _to_api_error(e) from None
    return ok(
        {"requests": [JoinRequestOut.from_domain(r).model_dump(mode="json") for r in requests]}
    )
