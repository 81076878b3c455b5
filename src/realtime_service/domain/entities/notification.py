from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Notification:
    id: int
    user_id: int
    type: str
    message: str
    is_read: bool
    related_user_id: int | None
    created_at: datetime
