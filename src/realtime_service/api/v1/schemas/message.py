from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from realtime_service.application.dto.records import (
    GroupMessageRecord,
    MessageRecord,
    NotificationRecord,
)


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageRequest(_Request):
    to_user_id: int
    content: str = ""
    voice_message_url: str | None = None
    voice_message_duration: int | None = Field(None, ge=0)


class SendGroupMessageRequest(_Request):
    content: str = ""
    voice_message_url: str | None = None
    voice_message_duration: int | None = Field(None, ge=0)


# REST responses reuse the push-frame records so both channels render alike.
MessageResponse = MessageRecord
GroupMessageResponse = GroupMessageRecord
NotificationResponse = NotificationRecord
