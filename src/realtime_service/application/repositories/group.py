from __future__ import annotations

from typing import Protocol

from realtime_service.application.dto.message import GroupMessageDraft
from realtime_service.domain.entities.group_message import GroupMessage


class GroupReader(Protocol):
    async def members_of(self, group_id: int) -> set[int]:
        """Member user ids. Empty set for an unknown group."""
        ...

    async def list_messages(
        self,
        group_id: int,
        *,
        before_id: int | None = None,
        limit: int = 50,
    ) -> list[GroupMessage]: ...


class GroupMessageWriter(Protocol):
    async def save(self, draft: GroupMessageDraft) -> GroupMessage: ...
