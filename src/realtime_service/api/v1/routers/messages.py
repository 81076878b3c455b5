from __future__ import annotations

from fastapi import APIRouter, Query

from realtime_service.api.deps import CurrentPrincipal, HubDep, UoWDep
from realtime_service.api.v1.schemas.message import MessageResponse, SendMessageRequest
from realtime_service.application.dto.message import VoiceAttachment
from realtime_service.config import settings
from realtime_service.services import history_service

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def list_recent_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    limit: int = Query(settings.HISTORY_PAGE_LIMIT, ge=1, le=200),
) -> list[MessageResponse]:
    messages = await history_service.list_recent(principal.user_id, limit, uow)
    return [MessageResponse.model_validate(m) for m in messages]


@router.get("/{other_user_id}", response_model=list[MessageResponse])
async def list_conversation(
    other_user_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    hub: HubDep,
    before_id: int | None = Query(None, alias="beforeId", ge=1),
    limit: int = Query(settings.HISTORY_PAGE_LIMIT, ge=1, le=200),
) -> list[MessageResponse]:
    if before_id is None:
        # Opening a conversation reads everything the other side sent.
        await hub.messages.mark_conversation_read(principal.user_id, other_user_id)
    messages = await history_service.list_between(
        principal.user_id, other_user_id, before_id, limit, uow,
    )
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    hub: HubDep,
) -> MessageResponse:
    message = await hub.messages.route_direct(
        principal.user_id,
        body.to_user_id,
        body.content,
        VoiceAttachment.from_fields(body.voice_message_url, body.voice_message_duration),
    )
    return MessageResponse.model_validate(message)


@router.post("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: int,
    principal: CurrentPrincipal,
    hub: HubDep,
) -> MessageResponse:
    message = await hub.messages.mark_read(message_id, principal.user_id)
    return MessageResponse.model_validate(message)
