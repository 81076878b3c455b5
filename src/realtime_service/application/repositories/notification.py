from __future__ import annotations

from typing import Protocol

from realtime_service.application.dto.message import NotificationDraft
from realtime_service.domain.entities.notification import Notification


class NotificationReader(Protocol):
    async def get_by_id(self, notification_id: int) -> Notification | None: ...

    async def list_for_user(self, user_id: int, *, limit: int = 50) -> list[Notification]: ...


class NotificationWriter(Protocol):
    async def create(self, draft: NotificationDraft) -> Notification: ...

    async def mark_read(self, notification_id: int) -> None: ...
