"""Wire representation of persisted records (camelCase JSON).

Shared by the WebSocket push frames and the REST responses so that a client
renders the same shape from either source.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MessageRecord(_Record):
    id: int
    from_user_id: int
    to_user_id: int
    content: str
    voice_message_url: str | None = None
    voice_message_duration: int | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class GroupMessageRecord(_Record):
    id: int
    from_user_id: int
    group_id: int
    content: str
    voice_message_url: str | None = None
    voice_message_duration: int | None = None
    created_at: datetime


class NotificationRecord(_Record):
    id: int
    user_id: int
    type: str
    message: str
    is_read: bool
    related_user_id: int | None = None
    created_at: datetime


class UnsavedMessageRecord(_Record):
    """A direct message the store rejected. Relayed live once, absent from history."""

    id: None = None
    from_user_id: int
    to_user_id: int
    content: str
    voice_message_url: str | None = None
    voice_message_duration: int | None = None
    is_read: bool = False
    created_at: datetime
    persisted: bool = False
