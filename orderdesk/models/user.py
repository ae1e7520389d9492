from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

# Application roles a stored user may hold.  "N/A" means "not yet assigned",
# which is what a user gets on first sync before joining an organization.
USER_ROLES = ("admin", "service_client", "delivery", "N/A")


@dataclass(frozen=True, slots=True)
class UserRecord:
    """Stored user, linked to the identity provider by uid.

    organization_id is the authoritative membership reference: non-None
    means the user belongs to that organization with `role`.
    """

    id: int
    uid: str
    email: str
    display_name: str | None = None
    email_verified: bool = False
    role: str = "N/A"
    organization_id: int | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_login_at: datetime | None = None

    @property
    def has_organization(self) -> bool:
        return self.organization_id is not None
