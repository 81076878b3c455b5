from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: int
    from_user_id: int
    to_user_id: int
    content: str
    voice_message_url: str | None
    voice_message_duration: int | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    def mark_read(self, at: datetime) -> Message:
        """Return the read copy. Already-read messages keep their first read_at."""
        if self.is_read:
            return self
        return replace(self, is_read=True, read_at=at)
