"""User sync: mirror the identity provider's account into the user table.

Clients call POST /api/auth/sync right after every sign-in.  The first call
creates the stored user with role "N/A" and no organization, which is
what every later organization-status lookup reads.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Annotated

from fastapi import APIRouter, Depends

from orderdesk.api.dependencies import get_onboarding, require_identity
from orderdesk.api.errors import ApiError
from orderdesk.api.schemas import Envelope, SyncedUserOut, SyncIn, ok
from orderdesk.models.identity import Identity
from orderdesk.services.onboarding_service import OnboardingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/sync", response_model=Envelope, response_model_exclude_none=True)
async def sync_user(
    identity: Annotated[Identity, Depends(require_identity)],
    onboarding: Annotated[OnboardingService, Depends(get_onboarding)],
    body: SyncIn | None = None,
) -> Envelope:
    if body is not None and body.uid and body.uid != identity.uid:
        logger.warning("Sync rejected, uid mismatch token=%s body=%s", identity.uid, body.uid)
        raise ApiError(403, "UID_MISMATCH", "Token uid does not match the request")
    if body is not None and body.display_name and not identity.display_name:
        identity = replace(identity, display_name=body.display_name)

    result = await onboarding.sync_user(identity)
    return ok(SyncedUserOut.from_domain(result.user, is_new_user=result.is_new_user))
