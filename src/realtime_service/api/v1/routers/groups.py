from __future__ import annotations

from fastapi import APIRouter, Query

from realtime_service.api.deps import CurrentPrincipal, HubDep, UoWDep
from realtime_service.api.v1.schemas.message import GroupMessageResponse, SendGroupMessageRequest
from realtime_service.application.dto.message import VoiceAttachment
from realtime_service.config import settings
from realtime_service.services import history_service

router = APIRouter(prefix="/api/v1/groups", tags=["groups"])


@router.get("/{group_id}/messages", response_model=list[GroupMessageResponse])
async def list_group_messages(
    group_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    before_id: int | None = Query(None, alias="beforeId", ge=1),
    limit: int = Query(settings.HISTORY_PAGE_LIMIT, ge=1, le=200),
) -> list[GroupMessageResponse]:
    messages = await history_service.list_group_messages(
        group_id, principal.user_id, before_id, limit, uow,
    )
    return [GroupMessageResponse.model_validate(m) for m in messages]


@router.post("/{group_id}/messages", response_model=GroupMessageResponse, status_code=201)
async def send_group_message(
    group_id: int,
    body: SendGroupMessageRequest,
    principal: CurrentPrincipal,
    hub: HubDep,
) -> GroupMessageResponse:
    message = await hub.messages.route_group(
        principal.user_id,
        group_id,
        body.content,
        VoiceAttachment.from_fields(body.voice_message_url, body.voice_message_duration),
    )
    return GroupMessageResponse.model_validate(message)
