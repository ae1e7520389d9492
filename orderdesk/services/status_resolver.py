"""Organization status resolution.

Classifies an authenticated identity into exactly one membership state by
reading authoritative storage.  Custom claims on the identity (role,
organization_id) are never consulted: they lag behind the user record.

Precedence is fixed: organization > invitations > requests > none.  Once
the user record references an organization, invitations and requests are
not fetched at all.
"""

from __future__ import annotations

import logging

from orderdesk.core.metrics import ORG_STATUS_RESOLUTIONS
from orderdesk.models.identity import Identity
from orderdesk.models.status import (
    HasOrganization,
    NoOrganization,
    OrganizationStatus,
    PendingInvitation,
    PendingRequest,
    StatusUser,
)
from orderdesk.models.user import UserRecord
from orderdesk.repos.registry import Repos

logger = logging.getLogger(__name__)


class UserNotFound(Exception):
    """Authenticated identity with no stored user record.

    Distinct from NoOrganization: it means sync never ran or the record
    was removed, which is an anomaly rather than an onboarding state.
    """

    code = "USER_NOT_FOUND"

    def __init__(self, uid: str) -> None:
        super().__init__(f"no user record for uid={uid}")
        self.uid = uid


class ResolutionError(Exception):
    """A lookup failed while resolving status.  The message is user-facing."""

    code = "RESOLUTION_FAILED"


def _status_user(user: UserRecord) -> StatusUser:
    return StatusUser(
        id=user.id,
        email=user.email,
        organization_id=user.organization_id,
        role=user.role,
    )


class OrganizationStatusResolver:
    def __init__(self, repos: Repos) -> None:
        self._repos = repos

    async def resolve(self, identity: Identity) -> OrganizationStatus:
        try:
            status = await self._classify(identity)
        except UserNotFound:
            ORG_STATUS_RESOLUTIONS.labels(status="user_not_found").inc()
            logger.error(
                "Authenticated identity has no user record uid=%s",
                identity.uid,
                extra={"uid": identity.uid},
            )
            raise
        except ResolutionError:
            ORG_STATUS_RESOLUTIONS.labels(status="error").inc()
            raise
        except Exception as e:
            ORG_STATUS_RESOLUTIONS.labels(status="error").inc()
            logger.exception(
                "Organization status lookup failed uid=%s",
                identity.uid,
                extra={"uid": identity.uid},
            )
            raise ResolutionError(
                "Could not load your organization status. Please try again."
            ) from e

        ORG_STATUS_RESOLUTIONS.labels(status=status.code.value).inc()
        logger.info(
            "Resolved organization status uid=%s status=%s",
            identity.uid,
            status.code,
            extra={"uid": identity.uid},
        )
        return status

    async def _classify(self, identity: Identity) -> OrganizationStatus:
        user = await self._repos.users.get_by_uid(identity.uid)
        if user is None:
            raise UserNotFound(identity.uid)
        status_user = _status_user(user)

        if user.organization_id is not None:
            org = await self._repos.orgs.get_by_id(user.organization_id)
            if org is None:
                # Membership points at an organization that no longer exists.
                raise ResolutionError(
                    "Your account references an organization that could not be found."
                )
            return HasOrganization(user=status_user, organization=org)

        invitations = await self._repos.invitations.list_pending_for_email(user.email)
        if invitations:
            return PendingInvitation(user=status_user, invitations=tuple(invitations))

        requests = await self._repos.join_requests.list_pending_for_user(user.id)
        if requests:
            return PendingRequest(user=status_user, requests=tuple(requests))

        return NoOrganization(user=status_user)
