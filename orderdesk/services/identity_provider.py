"""Identity provider contract and the local implementation.

The onboarding flow only needs `verify_token(token) -> Identity`, plus the
account operations the session store forwards (sign in, sign up, sign out,
password reset).  The contract is a Protocol so a hosted provider can be
dropped in; LocalIdentityProvider implements it with argon2 password
hashes and ES256 identity tokens, and is what dev and tests run against.

Every verification failure maps to one AuthenticationError subclass.
Callers treat all of them as "not authenticated" and never retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

import jwt

from orderdesk.models.identity import Identity
from orderdesk.repos.user_repo import normalize_email
from orderdesk.services import auth_service, token_service
from orderdesk.services.token_revocations import TokenRevocationList

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """The caller could not be authenticated."""

    code = "AUTH_TOKEN_INVALID"


class TokenMissing(AuthenticationError):
    code = "AUTH_TOKEN_MISSING"


class TokenExpired(AuthenticationError):
    code = "AUTH_TOKEN_EXPIRED"


class TokenMalformed(AuthenticationError):
    code = "AUTH_TOKEN_INVALID"


class TokenRevoked(AuthenticationError):
    code = "AUTH_TOKEN_REVOKED"


class InvalidCredentials(AuthenticationError):
    code = "INVALID_CREDENTIALS"


class EmailAlreadyRegistered(Exception):
    code = "EMAIL_ALREADY_REGISTERED"


class IdentityProvider(Protocol):
    async def sign_in(self, email: str, password: str) -> str: ...
    async def sign_up(
        self, email: str, password: str, display_name: str | None = None
    ) -> str: ...
    async def send_password_reset(self, email: str) -> None: ...
    async def verify_token(self, token: str) -> Identity: ...
    async def revoke_token(self, token: str) -> None: ...
    async def set_custom_claims(self, uid: str, claims: dict) -> None: ...


def identity_from_claims(claims: dict) -> Identity:
    org_id = claims.get("organization_id")
    return Identity(
        uid=claims["sub"],
        email=claims["email"],
        display_name=claims.get("name"),
        email_verified=bool(claims.get("email_verified", False)),
        role=claims.get("role"),
        organization_id=int(org_id) if org_id is not None else None,
    )


@dataclass
class _Account:
    uid: str
    email: str
    password_hash: str
    display_name: str | None = None
    email_verified: bool = False


class LocalIdentityProvider:
    """In-process identity provider.

    Accounts live in a dict keyed by normalized email.  Custom claims set
    through set_custom_claims() only show up in tokens minted afterwards,
    the same lag a hosted provider has.
    """

    def __init__(self, revocations: TokenRevocationList) -> None:
        self._revocations = revocations
        self._accounts: dict[str, _Account] = {}
        # uid -> custom claims, copied into every token minted afterwards
        self._claims: dict[str, dict] = {}
        # Emails that asked for a reset link; delivery is somebody else's job.
        self.password_resets: list[str] = []

    def _mint(self, account: _Account) -> str:
        return token_service.create_identity_token(
            uid=account.uid,
            email=account.email,
            display_name=account.display_name,
            email_verified=account.email_verified,
            claims=self._claims.get(account.uid),
        )

    async def sign_up(
        self, email: str, password: str, display_name: str | None = None
    ) -> str:
        email = normalize_email(email)
        if not email:
            raise ValueError("email must be non-empty")
        if email in self._accounts:
            logger.warning("Rejected duplicate sign-up email=%s", email)
            raise EmailAlreadyRegistered(email)

        account = _Account(
            uid=uuid4().hex,
            email=email,
            password_hash=auth_service.hash_password(password),
            display_name=display_name,
        )
        self._accounts[email] = account
        logger.info("Account created uid=%s email=%s", account.uid, email)
        return self._mint(account)

    async def sign_in(self, email: str, password: str) -> str:
        account = self._accounts.get(normalize_email(email))
        if account is None or not auth_service.verify_password(
            password, account.password_hash
        ):
            logger.warning("Sign-in rejected email=%s", email)
            raise InvalidCredentials("invalid email or password")

        if auth_service.needs_rehash(account.password_hash):
            account.password_hash = auth_service.hash_password(password)
            logger.info("Rehashed password for uid=%s", account.uid)
        return self._mint(account)

    async def send_password_reset(self, email: str) -> None:
        email = normalize_email(email)
        # Unknown addresses are accepted silently so the endpoint does not
        # reveal which emails have accounts.
        if email in self._accounts:
            self.password_resets.append(email)
            logger.info("Password reset requested email=%s", email)

    async def verify_token(self, token: str) -> Identity:
        if not token:
            raise TokenMissing("no identity token provided")
        try:
            claims = token_service.decode_identity_token(token)
        except jwt.ExpiredSignatureError:
            logger.warning("Expired identity token rejected")
            raise TokenExpired("identity token expired") from None
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid identity token rejected: %s", e)
            raise TokenMalformed("identity token invalid") from None

        if await self._revocations.is_revoked(claims["jti"]):
            logger.warning("Revoked identity token rejected  sub=%s", claims["sub"])
            raise TokenRevoked("identity token revoked")

        identity = identity_from_claims(claims)
        logger.debug("Identity token verified uid=%s", identity.uid)
        return identity

    async def revoke_token(self, token: str) -> None:
        try:
            claims = token_service.decode_identity_token(token)
        except jwt.ExpiredSignatureError:
            return  # already unusable
        except jwt.InvalidTokenError:
            raise TokenMalformed("identity token invalid") from None
        await self._revocations.revoke(claims["jti"], float(claims["exp"]))
        logger.info("Identity token revoked jti=%s sub=%s", claims["jti"], claims["sub"])

    async def set_custom_claims(self, uid: str, claims: dict) -> None:
        self._claims[uid] = {**self._claims.get(uid, {}), **claims}
        logger.info("Custom claims updated uid=%s keys=%s", uid, sorted(claims))

    def claims_for(self, uid: str) -> dict:
        return dict(self._claims.get(uid, {}))
