from __future__ import annotations

import logging

from realtime_service.application.dto.message import NotificationDraft
from realtime_service.application.dto.records import NotificationRecord
from realtime_service.application.exceptions import PersistenceError
from realtime_service.application.ports.clock import Clock, SystemClock
from realtime_service.application.uow import UowFactory
from realtime_service.domain.entities.notification import Notification
from realtime_service.infrastructure.ws.protocol import WsOutbound
from realtime_service.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class NotificationFanout:
    """Store a notification, then push it to the user's live connections."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        uow_factory: UowFactory,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()

    async def notify(
        self,
        user_id: int,
        type: str,
        message: str,
        related_user_id: int | None = None,
    ) -> Notification:
        draft = NotificationDraft(
            user_id=user_id,
            type=type,
            message=message,
            related_user_id=related_user_id,
            created_at=self._clock.now(),
        )
        try:
            async with self._uow_factory() as uow:
                notification = await uow.notifications_w.create(draft)
                await uow.commit()
        except Exception as exc:
            logger.exception("Failed to store %s notification for user=%s", type, user_id)
            raise PersistenceError("Failed to store notification") from exc

        await self.push(notification)
        return notification

    async def push(self, notification: Notification | NotificationRecord) -> int:
        """Best-effort push of an already stored notification."""
        if not self._registry.is_online(notification.user_id):
            return 0
        record = NotificationRecord.model_validate(notification, from_attributes=True)
        frame = WsOutbound(type="notification", notification=record.to_wire())
        return await self._registry.push_to_user(notification.user_id, frame)
