from __future__ import annotations

from datetime import datetime
from typing import Protocol

from realtime_service.application.dto.message import DirectMessageDraft
from realtime_service.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: int) -> Message | None: ...

    async def list_between(
        self,
        user_a: int,
        user_b: int,
        *,
        before_id: int | None = None,
        limit: int = 50,
    ) -> list[Message]:
        """Messages exchanged by the pair, oldest first."""
        ...

    async def list_recent_for(self, user_id: int, *, limit: int = 50) -> list[Message]:
        """Latest message of every conversation the user takes part in, newest first."""
        ...


class MessageWriter(Protocol):
    async def save(self, draft: DirectMessageDraft) -> Message:
        """Insert and return the stored message with its monotonic id."""
        ...

    async def mark_read(self, message_id: int, read_at: datetime) -> Message | None:
        """Flip is_read false→true. Returns None when the row was already read or is missing."""
        ...

    async def mark_all_read(self, to_user_id: int, from_user_id: int, read_at: datetime) -> list[int]:
        """Mark every unread message from ``from_user_id`` to ``to_user_id``; return ids."""
        ...
