from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol

from orderdesk.models.user import UserRecord


class UserRepo(Protocol):
    async def get_by_uid(self, uid: str) -> UserRecord | None: ...
    async def get_by_id(self, user_id: int) -> UserRecord | None: ...
    async def get_by_email(self, email: str) -> UserRecord | None: ...
    async def add(
        self,
        *,
        uid: str,
        email: str,
        display_name: str | None = None,
        email_verified: bool = False,
    ) -> UserRecord: ...
    async def update_profile(
        self,
        uid: str,
        *,
        email: str,
        display_name: str | None,
        email_verified: bool,
    ) -> UserRecord | None: ...
    async def set_organization(
        self, user_id: int, organization_id: int | None, role: str
    ) -> UserRecord | None: ...


def normalize_email(email: str) -> str:
    return email.strip().lower()


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[int, UserRecord] = {}
        self._ids = itertools.count(1)

    async def get_by_uid(self, uid: str) -> UserRecord | None:
        return next((u for u in self._by_id.values() if u.uid == uid), None)

    async def get_by_id(self, user_id: int) -> UserRecord | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> UserRecord | None:
        email = normalize_email(email)
        return next((u for u in self._by_id.values() if u.email == email), None)

    async def add(
        self,
        *,
        uid: str,
        email: str,
        display_name: str | None = None,
        email_verified: bool = False,
    ) -> UserRecord:
        if await self.get_by_uid(uid) is not None:
            raise ValueError("uid already exists")
        user = UserRecord(
            id=next(self._ids),
            uid=uid,
            email=normalize_email(email),
            display_name=display_name,
            email_verified=email_verified,
            last_login_at=datetime.now(UTC),
        )
        self._by_id[user.id] = user
        return user

    async def update_profile(
        self,
        uid: str,
        *,
        email: str,
        display_name: str | None,
        email_verified: bool,
    ) -> UserRecord | None:
        existing = await self.get_by_uid(uid)
        if existing is None:
            return None
        updated = replace(
            existing,
            email=normalize_email(email),
            display_name=display_name or existing.display_name,
            email_verified=email_verified,
            last_login_at=datetime.now(UTC),
        )
        self._by_id[updated.id] = updated
        return updated

    async def set_organization(
        self, user_id: int, organization_id: int | None, role: str
    ) -> UserRecord | None:
        return self._set_membership(user_id, organization_id, role)

    def _set_membership(
        self, user_id: int, organization_id: int | None, role: str
    ) -> UserRecord | None:
        """Synchronous membership write for the other in-memory repos."""
        existing = self._by_id.get(user_id)
        if existing is None:
            return None
        updated = replace(existing, organization_id=organization_id, role=role)
        self._by_id[user_id] = updated
        return updated
