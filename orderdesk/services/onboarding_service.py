"""Server-side onboarding mutations.

User sync, organization creation, invitations and the invitee's
accept/reject response.  Each method runs against one Repos bundle, which
for Postgres means one transaction per call.

These operations are not idempotent.  A second create_organization from
the same user fails with USER_ALREADY_HAS_ORGANIZATION and a second
response to the same invitation fails with INVITATION_FORBIDDEN; clients
are expected to keep the triggering control disabled while a call is out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from orderdesk.core.metrics import INVITATION_RESPONSES
from orderdesk.models.identity import Identity
from orderdesk.models.invitation import (
    DEFAULT_INVITED_ROLE,
    INVITABLE_ROLES,
    Invitation,
    InvitationAction,
    InvitationStatus,
    SetStatusResult,
)
from orderdesk.models.join_request import JoinRequest
from orderdesk.models.organization import Organization, generate_slug
from orderdesk.models.user import UserRecord
from orderdesk.repos.registry import Repos
from orderdesk.repos.user_repo import normalize_email
from orderdesk.services.identity_provider import IdentityProvider
from orderdesk.services.status_resolver import UserNotFound

logger = logging.getLogger(__name__)


class OnboardingError(Exception):
    """Base for mutation failures reported back to the caller."""

    code = "ONBOARDING_ERROR"
    http_status = 400


class OnboardingValidationError(OnboardingError):
    code = "VALIDATION_ERROR"


class OrganizationConflict(OnboardingError):
    code = "USER_ALREADY_HAS_ORGANIZATION"


class SlugTaken(OnboardingError):
    code = "ORGANIZATION_SLUG_EXISTS"
    http_status = 409


class NotAMember(OnboardingError):
    code = "USER_HAS_NO_ORGANIZATION"
    http_status = 403


class InviteeHasOrganization(OnboardingError):
    code = "INVITEE_HAS_ORGANIZATION"


class InvitationAlreadyPending(OnboardingError):
    code = "INVITATION_ALREADY_PENDING"
    http_status = 409


class InvitationNotFound(OnboardingError):
    code = "INVITATION_NOT_FOUND"
    http_status = 404


class InvitationForbidden(OnboardingError):
    code = "INVITATION_FORBIDDEN"
    http_status = 403


@dataclass(frozen=True, slots=True)
class SyncResult:
    user: UserRecord
    is_new_user: bool


@dataclass(frozen=True, slots=True)
class InvitationResponse:
    invitation_id: int
    status: InvitationStatus
    # Set only when the invitation was accepted.
    organization: Organization | None = None


class OnboardingService:
    def __init__(
        self,
        repos: Repos,
        identity_provider: IdentityProvider,
        *,
        invitation_ttl_days: int = 7,
    ) -> None:
        self._repos = repos
        self._identity_provider = identity_provider
        self._invitation_ttl = timedelta(days=invitation_ttl_days)

    async def _require_user(self, identity: Identity) -> UserRecord:
        user = await self._repos.users.get_by_uid(identity.uid)
        if user is None:
            logger.error("Mutation from identity without user record uid=%s", identity.uid)
            raise UserNotFound(identity.uid)
        return user

    async def sync_user(self, identity: Identity) -> SyncResult:
        """Create the stored user on first login, refresh its profile after."""
        existing = await self._repos.users.get_by_uid(identity.uid)
        if existing is None:
            user = await self._repos.users.add(
                uid=identity.uid,
                email=identity.email,
                display_name=identity.display_name,
                email_verified=identity.email_verified,
            )
            logger.info("Synced new user id=%d uid=%s", user.id, user.uid)
            return SyncResult(user=user, is_new_user=True)

        user = await self._repos.users.update_profile(
            identity.uid,
            email=identity.email,
            display_name=identity.display_name,
            email_verified=identity.email_verified,
        )
        if user is None:
            raise UserNotFound(identity.uid)
        logger.debug("Synced existing user id=%d uid=%s", user.id, user.uid)
        return SyncResult(user=user, is_new_user=False)

    async def create_organization(
        self,
        identity: Identity,
        *,
        name: str,
        slug: str | None = None,
        description: str | None = None,
    ) -> Organization:
        user = await self._require_user(identity)
        if user.has_organization:
            logger.warning(
                "Rejected organization creation, user already a member uid=%s org=%s",
                identity.uid,
                user.organization_id,
            )
            raise OrganizationConflict("User already belongs to an organization")

        name = name.strip()
        if not name:
            raise OnboardingValidationError("Organization name is required")
        slug = (slug or "").strip() or generate_slug(name)
        if not slug:
            raise OnboardingValidationError("Could not derive a slug from the name")

        if await self._repos.orgs.get_by_slug(slug) is not None:
            logger.warning("Rejected organization creation, slug=%s taken", slug)
            raise SlugTaken("An organization with that name or slug already exists")

        try:
            org = await self._repos.orgs.create_organization(
                name=name,
                slug=slug,
                description=(description or "").strip() or None,
                creator_id=user.id,
            )
        except ValueError:
            # Lost a race with another creator between the check and the insert.
            raise SlugTaken("An organization with that name or slug already exists") from None

        # Outstanding tokens keep the old claims until they are re-minted.
        await self._identity_provider.set_custom_claims(
            identity.uid, {"role": "admin", "organization_id": org.id}
        )
        logger.info(
            "Organization created id=%d slug=%s admin uid=%s", org.id, org.slug, identity.uid
        )
        return org

    async def create_invitation(
        self,
        identity: Identity,
        *,
        email: str,
        role: str | None = None,
    ) -> Invitation:
        inviter = await self._require_user(identity)
        if inviter.organization_id is None:
            raise NotAMember("You do not belong to an organization")

        email = normalize_email(email)
        if not email:
            raise OnboardingValidationError("Email is required")
        role = role if role in INVITABLE_ROLES else DEFAULT_INVITED_ROLE

        invitee = await self._repos.users.get_by_email(email)
        if invitee is not None and invitee.has_organization:
            raise InviteeHasOrganization("That user already belongs to an organization")

        if await self._repos.invitations.find_pending(email, inviter.organization_id):
            raise InvitationAlreadyPending("A pending invitation already exists for this email")

        invitation = await self._repos.invitations.add(
            organization_id=inviter.organization_id,
            invited_email=email,
            inviter_id=inviter.id,
            assigned_role=role,
            expires_at=datetime.now(UTC) + self._invitation_ttl,
        )
        logger.info(
            "Invitation created id=%d org=%d role=%s by uid=%s",
            invitation.id,
            invitation.organization_id,
            role,
            identity.uid,
        )
        return invitation

    async def respond_to_invitation(
        self, identity: Identity, invitation_id: int, action: InvitationAction
    ) -> InvitationResponse:
        """Accept or reject an invitation addressed to the caller.

        Accepting assigns the invitation's organization and role to the
        caller in the same unit of work that marks the invitation accepted.
        """
        user = await self._require_user(identity)
        target = action.target_status
        result = await self._repos.invitations.set_status(
            invitation_id, user.email, target
        )
        INVITATION_RESPONSES.labels(action=action.value, result=result.value).inc()

        if result is SetStatusResult.NOT_FOUND:
            raise InvitationNotFound("Invitation not found")
        if result is SetStatusResult.FORBIDDEN:
            logger.warning(
                "Invitation response forbidden id=%d uid=%s action=%s",
                invitation_id,
                identity.uid,
                action,
            )
            raise InvitationForbidden("Invitation not found or not authorized")

        organization = None
        if target is InvitationStatus.ACCEPTED:
            invitation = await self._repos.invitations.get_by_id(invitation_id)
            if invitation is not None:
                organization = await self._repos.orgs.get_by_id(invitation.organization_id)
                await self._identity_provider.set_custom_claims(
                    identity.uid,
                    {
                        "role": invitation.assigned_role,
                        "organization_id": invitation.organization_id,
                    },
                )
        logger.info(
            "Invitation %s id=%d uid=%s", target, invitation_id, identity.uid
        )
        return InvitationResponse(
            invitation_id=invitation_id, status=target, organization=organization
        )

    async def list_pending_invitations(self, identity: Identity) -> list[Invitation]:
        user = await self._require_user(identity)
        return await self._repos.invitations.list_pending_for_email(user.email)

    async def list_pending_requests(self, identity: Identity) -> list[JoinRequest]:
        user = await self._require_user(identity)
        return await self._repos.join_requests.list_pending_for_user(user.id)
