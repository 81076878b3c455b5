from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from realtime_service.application.dto.message import NotificationDraft
from realtime_service.domain.entities.notification import Notification
from realtime_service.infrastructure.db.mappers import notification as mapper
from realtime_service.infrastructure.db.models.notification import NotificationModel


class NotificationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, notification_id: int) -> Notification | None:
        model = await self._session.get(NotificationModel, notification_id)
        return mapper.model_to_entity(model) if model else None

    async def list_for_user(self, user_id: int, *, limit: int = 50) -> list[Notification]:
        stmt = (
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class NotificationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, draft: NotificationDraft) -> Notification:
        model = NotificationModel(
            user_id=draft.user_id,
            type=draft.type,
            message=draft.message,
            is_read=False,
            related_user_id=draft.related_user_id,
            created_at=draft.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def mark_read(self, notification_id: int) -> None:
        stmt = (
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
