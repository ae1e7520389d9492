from __future__ import annotations

import itertools
from typing import Protocol

from orderdesk.models.join_request import JoinRequest, JoinRequestStatus


class JoinRequestRepo(Protocol):
    async def add(
        self,
        *,
        organization_name: str,
        requested_by: int,
        organization_id: int | None = None,
    ) -> JoinRequest: ...
    async def list_pending_for_user(self, user_id: int) -> list[JoinRequest]: ...


class InMemoryJoinRequestRepo:
    def __init__(self) -> None:
        self._by_id: dict[int, JoinRequest] = {}
        self._ids = itertools.count(1)

    async def add(
        self,
        *,
        organization_name: str,
        requested_by: int,
        organization_id: int | None = None,
    ) -> JoinRequest:
        request = JoinRequest(
            id=next(self._ids),
            organization_name=organization_name,
            requested_by=requested_by,
            organization_id=organization_id,
        )
        self._by_id[request.id] = request
        return request

    async def list_pending_for_user(self, user_id: int) -> list[JoinRequest]:
        return [
            r
            for r in self._by_id.values()
            if r.requested_by == user_id and r.status is JoinRequestStatus.PENDING
        ]
