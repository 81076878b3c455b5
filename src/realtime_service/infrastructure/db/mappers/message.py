from __future__ import annotations

from realtime_service.application.dto.message import DirectMessageDraft
from realtime_service.domain.entities.message import Message
from realtime_service.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        from_user_id=model.from_user_id,
        to_user_id=model.to_user_id,
        content=model.content,
        voice_message_url=model.voice_message_url,
        voice_message_duration=model.voice_message_duration,
        is_read=model.is_read,
        read_at=model.read_at,
        created_at=model.created_at,
    )


def draft_to_values(draft: DirectMessageDraft) -> dict:
    return {
        "from_user_id": draft.from_user_id,
        "to_user_id": draft.to_user_id,
        "content": draft.content,
        "voice_message_url": draft.voice.url if draft.voice else None,
        "voice_message_duration": draft.voice.duration if draft.voice else None,
        "is_read": False,
        "created_at": draft.created_at,
    }
