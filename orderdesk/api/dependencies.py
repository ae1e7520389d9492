from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from orderdesk.api.errors import ApiError
from orderdesk.core.config import SETTINGS
from orderdesk.db import engine as db_engine
from orderdesk.models.identity import Identity
from orderdesk.repos.registry import Repos, in_memory_repos, pg_repos
from orderdesk.services.identity_provider import (
    AuthenticationError,
    LocalIdentityProvider,
)
from orderdesk.services.onboarding_service import OnboardingService
from orderdesk.services.status_resolver import OrganizationStatusResolver
from orderdesk.services.token_revocations import token_revocations

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# --- Module-level singletons (tests swap these out in conftest) ---
identity_provider = LocalIdentityProvider(token_revocations)
memory_repos = in_memory_repos()


async def get_repos() -> AsyncGenerator[Repos, None]:
    """One Repos bundle per request.

    With DATABASE_URL set, the bundle wraps a single session, so all of a
    request's writes commit or roll back together.
    """
    if db_engine.async_session_factory is None:
        yield memory_repos
        return
    async with db_engine.session_scope() as session:
        yield pg_repos(session)


async def require_identity(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Identity:
    """Verify the Bearer identity token.  Every failure is a 401."""
    if credentials is None or not credentials.credentials:
        logger.debug("Request without bearer token")
        raise ApiError(
            401,
            "AUTH_TOKEN_MISSING",
            "Token not provided or malformed",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await identity_provider.verify_token(credentials.credentials)
    except AuthenticationError as e:
        raise ApiError(
            401,
            e.code,
            "Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def get_resolver(
    repos: Annotated[Repos, Depends(get_repos)],
) -> OrganizationStatusResolver:
    return OrganizationStatusResolver(repos)


def get_onboarding(
    repos: Annotated[Repos, Depends(get_repos)],
) -> OnboardingService:
    return OnboardingService(
        repos,
        identity_provider,
        invitation_ttl_days=SETTINGS.invitation_ttl_days,
    )
