from __future__ import annotations

from realtime_service.application.dto.message import GroupMessageDraft
from realtime_service.domain.entities.group_message import GroupMessage
from realtime_service.infrastructure.db.models.group import GroupMessageModel


def model_to_entity(model: GroupMessageModel) -> GroupMessage:
    return GroupMessage(
        id=model.id,
        from_user_id=model.from_user_id,
        group_id=model.group_id,
        content=model.content,
        voice_message_url=model.voice_message_url,
        voice_message_duration=model.voice_message_duration,
        created_at=model.created_at,
    )


def draft_to_values(draft: GroupMessageDraft) -> dict:
    return {
        "from_user_id": draft.from_user_id,
        "group_id": draft.group_id,
        "content": draft.content,
        "voice_message_url": draft.voice.url if draft.voice else None,
        "voice_message_duration": draft.voice.duration if draft.voice else None,
        "created_at": draft.created_at,
    }
