from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated identity extracted from a verified identity token.

    uid/email/display_name/email_verified come from the identity provider.

    role and organization_id are custom claims.  They are refreshed only
    when a new token is minted, so they can lag behind the stored user
    record.  Nothing that decides organization membership reads them; the
    status resolver always goes back to the user record.
    """

    uid: str
    email: str
    display_name: str | None = None
    email_verified: bool = False
    role: str | None = None
    organization_id: int | None = None
