"""GET /api/user/organization-status: the onboarding flow's single read."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from orderdesk.api.dependencies import get_resolver, require_identity
from orderdesk.api.errors import ApiError
from orderdesk.api.schemas import Envelope, status_envelope
from orderdesk.models.identity import Identity
from orderdesk.services.status_resolver import (
    OrganizationStatusResolver,
    ResolutionError,
    UserNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get(
    "/organization-status",
    response_model=Envelope,
    response_model_exclude_none=True,
)
async def organization_status(
    identity: Annotated[Identity, Depends(require_identity)],
    resolver: Annotated[OrganizationStatusResolver, Depends(get_resolver)],
) -> Envelope:
    """Classify the caller as HAS_ORGANIZATION, PENDING_INVITATION,
    PENDING_REQUEST or NO_ORGANIZATION.

    A caller with a valid token but no stored user gets 404 USER_NOT_FOUND,
    never NO_ORGANIZATION.
    """
    try:
        status = await resolver.resolve(identity)
    except UserNotFound:
        raise ApiError(404, "USER_NOT_FOUND", "User not found in the database") from None
    except ResolutionError as e:
        raise ApiError(500, "INTERNAL_SERVER_ERROR", str(e)) from None
    return status_envelope(status)
