from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class GroupMessage:
    id: int
    from_user_id: int
    group_id: int
    content: str
    voice_message_url: str | None
    voice_message_duration: int | None
    created_at: datetime
