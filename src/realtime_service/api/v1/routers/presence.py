from __future__ import annotations

from fastapi import APIRouter

from realtime_service.api.deps import CurrentPrincipal, HubDep
from realtime_service.api.v1.schemas.presence import (
    OnlineStatusResponse,
    PresenceBatchRequest,
    PresenceBatchResponse,
)

router = APIRouter(prefix="/api/v1", tags=["presence"])


@router.get("/users/{user_id}/online", response_model=OnlineStatusResponse)
async def user_online(
    user_id: int,
    _principal: CurrentPrincipal,
    hub: HubDep,
) -> OnlineStatusResponse:
    return OnlineStatusResponse(user_id=user_id, is_online=hub.presence.is_online(user_id))


@router.post("/presence/batch", response_model=PresenceBatchResponse)
async def presence_batch(
    body: PresenceBatchRequest,
    _principal: CurrentPrincipal,
    hub: HubDep,
) -> PresenceBatchResponse:
    return PresenceBatchResponse(statuses=hub.presence.batch_status(body.user_ids))
