from __future__ import annotations

from realtime_service.domain.entities.notification import Notification
from realtime_service.infrastructure.db.models.notification import NotificationModel


def model_to_entity(model: NotificationModel) -> Notification:
    return Notification(
        id=model.id,
        user_id=model.user_id,
        type=model.type,
        message=model.message,
        is_read=model.is_read,
        related_user_id=model.related_user_id,
        created_at=model.created_at,
    )
