from __future__ import annotations

from fastapi import APIRouter, Query

from realtime_service.api.deps import CurrentPrincipal, UoWDep
from realtime_service.api.v1.schemas.message import NotificationResponse
from realtime_service.config import settings
from realtime_service.services import history_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int = Query(settings.HISTORY_PAGE_LIMIT, ge=1, le=200),
) -> list[NotificationResponse]:
    notifications = await history_service.list_notifications(principal.user_id, limit, uow)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> NotificationResponse:
    notification = await history_service.mark_notification_read(
        notification_id, principal.user_id, uow,
    )
    return NotificationResponse.model_validate(notification)
