from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from realtime_service.application.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class VoiceAttachment:
    url: str
    duration: int | None = None

    def __post_init__(self) -> None:
        if not self.url:
            raise ValidationError("voiceMessageUrl must not be empty")
        if self.duration is not None and self.duration < 0:
            raise ValidationError("voiceMessageDuration must be >= 0")

    @classmethod
    def from_fields(cls, url: str | None, duration: int | None) -> VoiceAttachment | None:
        if not url:
            return None
        return cls(url=url, duration=duration)


@dataclass(frozen=True, slots=True)
class DirectMessageDraft:
    from_user_id: int
    to_user_id: int
    content: str
    created_at: datetime
    voice: VoiceAttachment | None = None


@dataclass(frozen=True, slots=True)
class GroupMessageDraft:
    from_user_id: int
    group_id: int
    content: str
    created_at: datetime
    voice: VoiceAttachment | None = None


@dataclass(frozen=True, slots=True)
class NotificationDraft:
    user_id: int
    type: str
    message: str
    created_at: datetime
    related_user_id: int | None = None
