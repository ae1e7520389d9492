"""Identity token creation and validation (ES256).

Identity tokens play the role an external identity provider's ID token
plays: they prove who the caller is (uid, email) and carry a couple of
custom claims (role, organization_id).  Those claims are copied in at
mint time and are NOT refreshed until the next token, so readers must
treat them as hints.

Centralizes all token logic so the identity provider (issuance) and the
API dependencies (validation) share one key and one claims schema.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from orderdesk.core.config import SETTINGS

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# Dev/test: generate an ephemeral EC key pair on import.
# Production: load from env var, file, or KMS (not implemented yet).
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "orderdesk"
AUDIENCE = "orderdesk"


def create_identity_token(
    *,
    uid: str,
    email: str,
    display_name: str | None = None,
    email_verified: bool = False,
    claims: dict | None = None,
    ttl_minutes: int | None = None,
) -> str:
    """Build and sign an identity token.

    Standard claims: sub, iss, aud, exp, iat, jti.
    Profile claims: email, name, email_verified.
    Custom claims (role, organization_id) are merged from `claims`.
    """
    now = datetime.now(UTC)
    ttl = ttl_minutes if ttl_minutes is not None else SETTINGS.id_token_ttl_min
    payload: dict = {
        "sub": uid,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "email": email,
        "name": display_name,
        "email_verified": email_verified,
    }
    for key, value in (claims or {}).items():
        payload.setdefault(key, value)
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_identity_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 to prevent alg:none and alg-switching.
    Validates exp, iss and aud through PyJWT options.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti", "email"]},
    )
